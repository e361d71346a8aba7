"""Generative completion providers for transcript correction.

Provides an abstraction layer over Claude, OpenAI, Groq and Ollama so the
generative corrector can ask a model to rewrite misheard terms.
"""

from transcript_rag.llm.base import (
    CompletionProvider,
    CompletionResponse,
    LLMConfig,
    LLMProviderType,
)
from transcript_rag.llm.claude import ClaudeLLM
from transcript_rag.llm.ollama import OllamaLLM
from transcript_rag.llm.openai import OpenAILLM, get_llm_provider, llm_config_from_settings
from transcript_rag.llm.prompts import CorrectionPromptBuilder

__all__ = [
    "CompletionProvider",
    "CompletionResponse",
    "LLMConfig",
    "LLMProviderType",
    "ClaudeLLM",
    "OllamaLLM",
    "OpenAILLM",
    "get_llm_provider",
    "llm_config_from_settings",
    "CorrectionPromptBuilder",
]
