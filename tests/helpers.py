"""Request builders and canned provider bodies shared by the tests."""

from typing import Dict, List, Optional

from companion_gateway.models import CompletionRequest

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
HF_BASE_URL = "https://api-inference.huggingface.co/models/"


def openai_body(content: str = "Hello there", **usage: int) -> Dict:
    """A chat-completions response body."""
    body: Dict = {
        "id": "chatcmpl-test",
        "choices": [{"message": {"role": "assistant", "content": content}}],
    }
    if usage:
        body["usage"] = usage
    return body


def make_request(
    provider: str = "openai",
    model: str = "gpt-4o-mini",
    contents: Optional[List[str]] = None,
    **kwargs,
) -> CompletionRequest:
    """Build a CompletionRequest with alternating user/assistant turns."""
    contents = contents or ["Hello"]
    messages = [
        {"role": "user" if i % 2 == 0 else "assistant", "content": c}
        for i, c in enumerate(contents)
    ]
    return CompletionRequest(messages=messages, model=model, provider=provider, **kwargs)
