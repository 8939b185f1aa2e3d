"""
LLM client factory with DeepSeek-first, OpenAI-fallback strategy.

This module centralizes LLM provider selection for the study assistant.
It ensures:
  1. DeepSeek is the primary provider (OpenAI-compatible API, low cost)
  2. OpenAI is the fallback (if the DeepSeek key is not set)
  3. Clear error messages if no LLM is configured

Usage:
    from studybuddy.tools.llm_client import get_llm

    llm = get_llm()
    response = llm.invoke("Explain photosynthesis in two sentences")
"""

from __future__ import annotations

from typing import Literal

from langchain_openai import ChatOpenAI

from studybuddy.config import config
from studybuddy.utils.logging_config import logger


def get_llm(
    provider: Literal["auto", "deepseek", "openai"] = "auto",
    temperature: float = 0.7,
    timeout: int = 30,
    max_tokens: int = 2000,
) -> ChatOpenAI:
    """
    Get an LLM client with automatic provider fallback.

    Args:
        provider: "auto" (DeepSeek if configured, else OpenAI), "deepseek",
                 or "openai".
        temperature: LLM temperature (0.0=deterministic, 1.0=creative).
        timeout: Request timeout in seconds.
        max_tokens: Upper bound on the reply length.

    Returns:
        ChatOpenAI: Configured LLM client.

    Raises:
        ValueError: If no LLM provider is configured or the requested
                   provider is not available.
    """

    if provider == "auto":
        if config.DEEPSEEK_API_KEY:
            logger.debug("Using DeepSeek as LLM provider (primary)")
            return _create_deepseek_client(temperature, timeout, max_tokens)
        elif config.OPENAI_API_KEY:
            logger.warning(
                "DeepSeek API key not set; falling back to OpenAI. "
                "Set DEEPSEEK_API_KEY to use the primary provider."
            )
            return _create_openai_client(temperature, timeout, max_tokens)
        else:
            raise ValueError(
                "No LLM provider configured. "
                "Set either DEEPSEEK_API_KEY or OPENAI_API_KEY in .env"
            )

    elif provider == "deepseek":
        if not config.DEEPSEEK_API_KEY:
            raise ValueError(
                "DeepSeek provider requested but DEEPSEEK_API_KEY not set in .env"
            )
        return _create_deepseek_client(temperature, timeout, max_tokens)

    elif provider == "openai":
        if not config.OPENAI_API_KEY:
            raise ValueError(
                "OpenAI provider requested but OPENAI_API_KEY not set in .env"
            )
        return _create_openai_client(temperature, timeout, max_tokens)

    else:
        raise ValueError(f"Unknown provider: {provider}. Use 'auto', 'deepseek', or 'openai'")


def _create_deepseek_client(
    temperature: float, timeout: int, max_tokens: int
) -> ChatOpenAI:
    """DeepSeek speaks the OpenAI Chat Completions protocol at its own base_url."""

    return ChatOpenAI(
        api_key=config.DEEPSEEK_API_KEY,
        model=config.DEEPSEEK_MODEL,
        base_url=config.DEEPSEEK_BASE_URL,
        temperature=temperature,
        timeout=timeout,
        max_tokens=max_tokens,
    )


def _create_openai_client(
    temperature: float, timeout: int, max_tokens: int
) -> ChatOpenAI:
    return ChatOpenAI(
        api_key=config.OPENAI_API_KEY,
        model=config.OPENAI_MODEL,
        temperature=temperature,
        timeout=timeout,
        max_tokens=max_tokens,
    )


def get_llm_provider_info() -> dict:
    """
    Return information about available LLM providers.

    Useful for logging which provider the "auto" strategy will pick.
    """
    deepseek_available = bool(config.DEEPSEEK_API_KEY)
    openai_available = bool(config.OPENAI_API_KEY)

    if deepseek_available:
        primary = "deepseek"
    elif openai_available:
        primary = "openai"
    else:
        primary = "none"

    return {
        "deepseek_available": deepseek_available,
        "deepseek_model": config.DEEPSEEK_MODEL if deepseek_available else None,
        "openai_available": openai_available,
        "openai_model": config.OPENAI_MODEL if openai_available else None,
        "primary_provider": primary,
    }
