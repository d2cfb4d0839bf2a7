"""LLM provider adapters.

Three concrete implementations of ILLMProvider (venue_refresh/interfaces/llm_provider.py):
    - AnthropicLLMProvider -- Claude via the Messages API
    - OpenAILLMProvider    -- OpenAI or any OpenAI-compatible API (xAI, Groq, ...)
    - OllamaLLMProvider    -- local models via an Ollama server

main.py picks the provider named by LLM_PROVIDER, or the first configured
one in priority order anthropic, openai, ollama.
"""

from venue_refresh.providers.llm.anthropic_provider import AnthropicLLMProvider
from venue_refresh.providers.llm.ollama_provider import OllamaLLMProvider
from venue_refresh.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OllamaLLMProvider", "OpenAILLMProvider"]
