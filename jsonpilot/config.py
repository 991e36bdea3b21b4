# jsonpilot/config.py

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

logger = logging.getLogger("jsonpilot_backend")

DEFAULT_COPILOT_TOKEN_URL = "https://api.github.com/copilot_internal/v2/token"
DEFAULT_COPILOT_BASE_URL = "https://api.githubcopilot.com"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[config] Ignoring non-numeric {name}={raw!r}")
        return default


@dataclass
class Settings:
    use_copilot_api: bool = False
    github_oauth_token: str | None = None
    copilot_token_url: str = DEFAULT_COPILOT_TOKEN_URL
    copilot_base_url: str = DEFAULT_COPILOT_BASE_URL
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    openai_model: str | None = None
    json_fix_model: str | None = None
    llm_timeout: float | None = 60.0
    review_ttl_seconds: int = 3600
    knowledge_base_path: str = "./.jsonpilot/knowledge_base.json"
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def repair_model(self) -> str | None:
        return self.json_fix_model or self.openai_model


def load_settings() -> Settings:
    """
    Collect every environment-driven knob in one place.
    """
    return Settings(
        use_copilot_api=_env_flag("USE_COPILOT_API"),
        github_oauth_token=os.getenv("GITHUB_OAUTH_TOKEN"),
        copilot_token_url=os.getenv("COPILOT_TOKEN_URL", DEFAULT_COPILOT_TOKEN_URL),
        copilot_base_url=os.getenv("COPILOT_BASE_URL", DEFAULT_COPILOT_BASE_URL),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        openai_model=os.getenv("OPENAI_MODEL"),
        json_fix_model=os.getenv("JSON_FIX_MODEL"),
        llm_timeout=_env_float("LLM_TIMEOUT", 60.0),
        review_ttl_seconds=int(os.getenv("REVIEW_TTL_SECONDS", "3600")),
        knowledge_base_path=os.getenv("KNOWLEDGE_BASE_PATH", "./.jsonpilot/knowledge_base.json"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
