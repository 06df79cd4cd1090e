"""
Loads and handles config from config.yml
API keys and the admin token are loaded from .env for security
"""
import logging
import os
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class LLMConfig(BaseModel):
    """Configuration for one chat-completion backend."""
    base_url: str
    model: str
    api_key: Optional[str] = None
    timeout: float = 180.0


class SearchConfig(BaseModel):
    """Configuration for the news search backends."""
    rss_url: str = "https://news.google.com/rss/search"
    region: str = "in"
    lang: str = "en"
    rss_timeout: float = 15.0
    serper_url: str = "https://google.serper.dev"
    serper_api_key: Optional[str] = None
    serper_timeout: float = 10.0


class Config(BaseModel):
    # Core
    DATABASE_PATH: str
    LOG_LEVEL: str = "INFO"

    # Prompt settings cache; 0 fetches the settings document on every call
    SETTINGS_TTL_SECONDS: float = 0.0

    # Web
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    ADMIN_TOKEN: Optional[str] = None

    # Backends
    sonar: LLMConfig
    openai: LLMConfig
    search: SearchConfig = SearchConfig()


def _get_config_path() -> str:
    """Get the path to config.yml, handling different working directories."""
    # Try relative path first
    if os.path.exists('resources/config.yml'):
        return 'resources/config.yml'

    # Try from project root
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    config_path = os.path.join(project_root, 'resources', 'config.yml')
    if os.path.exists(config_path):
        return config_path

    raise FileNotFoundError("Cannot find resources/config.yml")


def _llm_config(data: Dict[str, Any], defaults: Dict[str, Any], api_key: Optional[str]) -> LLMConfig:
    return LLMConfig(
        base_url=data.get("base_url", defaults["base_url"]),
        model=data.get("model", defaults["model"]),
        api_key=api_key,
        timeout=float(data.get("timeout", 180.0)),
    )


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from config.yml and secrets from .env."""
    # Load .env for sensitive credentials
    load_dotenv()

    config_path = config_path or _get_config_path()

    with open(config_path, 'r') as file:
        config = yaml.safe_load(file) or {}

    search = config.get("search", {})

    loaded = Config(
        DATABASE_PATH=config.get("DATABASE_PATH", "data/console.db"),
        LOG_LEVEL=config.get("LOG_LEVEL", "INFO"),
        SETTINGS_TTL_SECONDS=float(config.get("SETTINGS_TTL_SECONDS", 0)),

        HOST=config.get("HOST", "0.0.0.0"),
        PORT=int(config.get("PORT", 8080)),
        ADMIN_TOKEN=os.getenv("ADMIN_TOKEN"),

        sonar=_llm_config(
            config.get("sonar", {}),
            {"base_url": "https://api.perplexity.ai", "model": "sonar"},
            os.getenv("PERPLEXITY_API_KEY"),
        ),
        openai=_llm_config(
            config.get("openai", {}),
            {"base_url": "https://api.openai.com/v1", "model": "gpt-4o-mini"},
            os.getenv("OPENAI_API_KEY"),
        ),
        search=SearchConfig(
            rss_url=search.get("rss_url", "https://news.google.com/rss/search"),
            region=search.get("region", "in"),
            lang=search.get("lang", "en"),
            rss_timeout=float(search.get("rss_timeout", 15.0)),
            serper_url=search.get("serper_url", "https://google.serper.dev"),
            serper_api_key=os.getenv("SERPER_API_KEY"),
            serper_timeout=float(search.get("serper_timeout", 10.0)),
        ),
    )

    for name, llm in (("sonar", loaded.sonar), ("openai", loaded.openai)):
        if not llm.api_key:
            logger.warning(f"No API key configured for the {name} backend")

    return loaded
