# src/codeguardian/llm_auth_helper.py
import os
import logging
from typing import Dict, TYPE_CHECKING

if TYPE_CHECKING:
    from .plugin_config import PluginConfig

logger = logging.getLogger(__name__)


def _provider(model: str) -> str:
    # "provider/model_name" -> "provider"
    return model.split('/')[0].lower() if "/" in model else ""


def provider_env_vars(config: 'PluginConfig') -> Dict[str, str]:
    """
    Environment variables LiteLLM reads for the configured provider that are not
    passed directly to litellm.acompletion() (API key, base URL and API version are).
    """
    env: Dict[str, str] = {}
    if not config.llm_model:
        return env

    model = config.llm_model.lower()
    provider = _provider(config.llm_model)

    if provider in ("vertex_ai", "vertex_ai_beta") or "vertex_ai" in model:
        if config.vertex_project:
            env["VERTEXAI_PROJECT"] = config.vertex_project
        if config.vertex_location:
            env["VERTEXAI_LOCATION"] = config.vertex_location

    if (provider == "bedrock" or "bedrock" in model) and config.aws_region_name:
        env["AWS_REGION_NAME"] = config.aws_region_name
        env["AWS_DEFAULT_REGION"] = config.aws_region_name

    return env


def setup_litellm_provider_env(config: 'PluginConfig') -> None:
    """
    Exports provider-specific environment variables LiteLLM expects, based on the
    plugin configuration. Missing optional values are left to the provider SDK defaults.
    """
    if not config.llm_model:
        logger.info("No LLM model specified in config, skipping provider-specific env setup for LiteLLM.")
        return

    for name, value in provider_env_vars(config).items():
        os.environ[name] = value
        logger.info(f"Set environment variable {name} to '{value}'")

    if _provider(config.llm_model) == "azure" and not config.azure_api_version:
        logger.warning("Azure model configured but PLUGIN_AZURE_API_VERSION is not set. "
                       "This is often required for Azure OpenAI calls.")
