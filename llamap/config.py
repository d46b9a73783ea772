"""Centralised settings for llamap.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (one level up from the package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Scraper
    # ------------------------------------------------------------------
    user_agent: str = field(
        default_factory=lambda: os.environ.get("LLAMAP_USER_AGENT", "LLaMap Bot")
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )
    scrape_delay_ms: int = field(
        default_factory=lambda: int(os.environ.get("SCRAPE_DELAY_MS", "1000"))
    )
    render_js: bool = field(default_factory=lambda: _env_flag("LLAMAP_RENDER_JS"))

    # ------------------------------------------------------------------
    # Parser
    # ------------------------------------------------------------------
    default_text_by: str = field(
        default_factory=lambda: os.environ.get("LLAMAP_TEXT_BY", "dom_smoothie")
    )

    # ------------------------------------------------------------------
    # Summarizer / LLM providers
    # ------------------------------------------------------------------
    ollama_base_url: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    )
    openai_base_url: str | None = field(
        default_factory=lambda: os.environ.get("OPENAI_BASE_URL") or None
    )
    model_api_key: str = field(
        default_factory=lambda: os.environ.get("LLAMAP_MODEL_API_KEY", "")
    )
    llm_timeout: float = field(
        default_factory=lambda: float(os.environ.get("LLM_TIMEOUT", "300.0"))
    )


# Module-level singleton, import this everywhere:
#   from llamap.config import settings
settings = Settings()
