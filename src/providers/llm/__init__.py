"""LLM provider adapters.

    - OpenAILLMProvider - streaming chat completions from OpenAI or any
      OpenAI-compatible API (TogetherAI, Groq, vLLM, ...)

At startup, main.py builds the provider and injects it into the answer
streamer; nothing else talks to the completion backend.
"""

from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
