"""Request and response models for the companion gateway."""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TEMPERATURE = 0.7


class ChatMessage(BaseModel):
    """A single message in a conversation. Order in a list is significant."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class CompletionRequest(BaseModel):
    """Provider-agnostic chat completion request.

    Accepts the camelCase field names the chat client sends
    (``maxTokens``, ``apiKeys``, ``threadId``) as well as the Python names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    messages: List[ChatMessage] = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    provider: str = Field(..., min_length=1)
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens")
    supplied_keys: Dict[str, str] = Field(default_factory=dict, alias="apiKeys")
    thread_id: Optional[str] = Field(default=None, alias="threadId")

    @field_validator("temperature", mode="before")
    @classmethod
    def _default_temperature(cls, value: object) -> object:
        # A missing, null or zero temperature means "use the default".
        if value is None or value == 0:
            return DEFAULT_TEMPERATURE
        return value

    @field_validator("supplied_keys", mode="before")
    @classmethod
    def _drop_empty_keys(cls, value: object) -> object:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {k: v for k, v in value.items() if v}
        return value

    @property
    def last_message(self) -> ChatMessage:
        return self.messages[-1]


class UsageInfo(BaseModel):
    """Token usage reported (or, for Hugging Face, estimated) for one call."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class CompletionResult(BaseModel):
    """Normalized result of a successful gateway call."""

    model_config = ConfigDict(frozen=True)

    content: str
    model: str
    provider: str
    usage: UsageInfo = Field(default_factory=UsageInfo)


class TitleResult(BaseModel):
    """Title for a new thread. Always produced."""

    title: str


class ErrorResponse(BaseModel):
    """Error response envelope."""

    error: str
    details: Optional[str] = None
    kind: str
