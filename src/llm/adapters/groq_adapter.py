# src/llm/adapters/groq_adapter.py — v1
"""Groq adapter: OpenAI-compatible endpoint driven through the openai SDK."""

from __future__ import annotations

from gitdoc.llm.adapters.openai_adapter import OpenAIAdapter

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class GroqAdapter(OpenAIAdapter):
    """Groq hosted inference adapter."""

    provider = "groq"
    base_url = GROQ_BASE_URL
