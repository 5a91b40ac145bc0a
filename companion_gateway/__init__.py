"""Companion gateway: provider-agnostic chat completion and title generation."""
