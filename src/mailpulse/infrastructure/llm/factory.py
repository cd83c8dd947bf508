"""Chat model construction for the configured provider."""

from __future__ import annotations

from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from loguru import logger
from pydantic import SecretStr

from mailpulse.infrastructure.settings import Settings

# Classification answers are one label and replies are short
DEFAULT_MAX_TOKENS = 512


def _api_key(key: SecretStr | None, env_name: str, provider: str) -> str:
    if not key:
        raise ValueError(f"{env_name} is required when llm_provider={provider}")
    return key.get_secret_value()


def create_llm(
    settings: Settings,
    temperature: float = 0.0,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> BaseChatModel:
    """Chat model for classification and reply drafting.

    Local vLLM and OpenAI both speak the OpenAI API; Groq has its own client.
    Low temperature keeps category answers stable.
    """
    provider = settings.llm_provider
    common: dict[str, Any] = {"temperature": temperature, "max_tokens": max_tokens}

    if provider == "groq":
        from langchain_groq import ChatGroq

        logger.info(f"LLM: Groq {settings.llm_model}")
        return ChatGroq(
            api_key=_api_key(settings.groq_api_key, "GROQ_API_KEY", provider),
            model_name=settings.llm_model,
            **common,
        )

    if provider in ("openai", "local"):
        from langchain_openai import ChatOpenAI

        if provider == "local":
            logger.info(f"LLM: vLLM {settings.vllm_model_name} at {settings.vllm_base_url}")
            return ChatOpenAI(
                base_url=settings.vllm_base_url,
                api_key="not-needed",
                model_name=settings.vllm_model_name,
                **common,
            )

        logger.info(f"LLM: OpenAI {settings.llm_model}")
        return ChatOpenAI(
            api_key=_api_key(settings.openai_api_key, "OPENAI_API_KEY", provider),
            model_name=settings.llm_model,
            **common,
        )

    raise ValueError(f"Unknown LLM provider: {provider}")
