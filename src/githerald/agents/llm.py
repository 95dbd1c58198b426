"""Construction of the chat model that drives the summarizer."""

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_groq import ChatGroq
from langchain_openai import ChatOpenAI

from githerald.config import ConfigError, LLMConfig

SUPPORTED_PROVIDERS = ("openai", "groq")


def create_chat_model(config: LLMConfig) -> BaseChatModel:
    """Build the chat model named by the ``llm`` configuration section."""
    provider = config.provider.lower()
    if provider == "openai":
        return ChatOpenAI(api_key=config.api_key, model=config.model)
    if provider == "groq":
        return ChatGroq(groq_api_key=config.api_key, model=config.model)
    raise ConfigError(f"Unsupported LLM provider '{config.provider}', expected one of {', '.join(SUPPORTED_PROVIDERS)}")
