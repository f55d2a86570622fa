from __future__ import annotations

from typing import TYPE_CHECKING

from src.config import settings

if TYPE_CHECKING:
    from langchain_core.language_models.chat_models import BaseChatModel

# Valid provider identifiers
VALID_PROVIDERS = ("ollama", "openai", "anthropic")

# Module-level cache of chat model clients, keyed by role
_llm_cache: dict[str, BaseChatModel] = {}


def clear_llm_cache() -> None:
    """Drop all cached LLM instances so they're recreated on next call."""
    _llm_cache.clear()


# ---------------------------------------------------------------------------
# Internal constructors (lazy imports to avoid hard dep on unused packages)
# ---------------------------------------------------------------------------

def _create_chat_model(
    provider: str,
    *,
    ollama_model: str,
    openai_model: str,
    anthropic_model: str,
    temperature: float,
    timeout: float | None = None,
) -> BaseChatModel:
    if provider == "ollama":
        from langchain_ollama import ChatOllama

        return ChatOllama(
            base_url=settings.OLLAMA_BASE_URL,
            model=ollama_model,
            temperature=temperature,
        )

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        if not settings.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY is required when using the openai provider")
        return ChatOpenAI(
            model=openai_model,
            temperature=temperature,
            api_key=settings.OPENAI_API_KEY,
            timeout=timeout,
            max_retries=0,  # retries are the user's call, not ours
        )

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        if not settings.ANTHROPIC_API_KEY:
            raise ValueError("ANTHROPIC_API_KEY is required when using the anthropic provider")
        return ChatAnthropic(
            model=anthropic_model,
            temperature=temperature,
            api_key=settings.ANTHROPIC_API_KEY,
            timeout=timeout,
            max_retries=0,
        )

    raise ValueError(f"Unknown provider: {provider!r}. Valid: {VALID_PROVIDERS}")


# ---------------------------------------------------------------------------
# Public factory functions
# ---------------------------------------------------------------------------

def get_extraction_llm() -> BaseChatModel:
    """Extraction Engine. Used for: narrative → timeline events."""
    key = "extraction"
    if key not in _llm_cache:
        _llm_cache[key] = _create_chat_model(
            settings.LLM_PROVIDER_EXTRACTION,
            ollama_model=settings.OLLAMA_MODEL_EXTRACTION,
            openai_model=settings.OPENAI_MODEL_EXTRACTION,
            anthropic_model=settings.ANTHROPIC_MODEL_EXTRACTION,
            temperature=0.1,
            timeout=settings.EXTRACTION_TIMEOUT_SECONDS,
        )
    return _llm_cache[key]


def get_evidence_llm() -> BaseChatModel:
    """Vision-capable Engine. Used for: per-item evidence summaries."""
    key = "evidence"
    if key not in _llm_cache:
        _llm_cache[key] = _create_chat_model(
            settings.LLM_PROVIDER_EVIDENCE,
            ollama_model=settings.OLLAMA_MODEL_EVIDENCE,
            openai_model=settings.OPENAI_MODEL_EVIDENCE,
            anthropic_model=settings.ANTHROPIC_MODEL_EVIDENCE,
            temperature=0.0,
            timeout=settings.EXTRACTION_TIMEOUT_SECONDS,
        )
    return _llm_cache[key]
