from dotenv import load_dotenv
from dataclasses import dataclass
from typing import Optional
from pathlib import Path
import json
import os

from seoaudit.constants import (
    DEFAULT_USER_AGENT,
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_LLM_TIMEOUT_SECONDS,
    DEFAULT_PERSIST_TIMEOUT_SECONDS,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_BATCH_PAGES,
)
from seoaudit.errors import ConfigError

load_dotenv()  # Loads variables from .env file


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")

    LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai")
    LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")

    # Database backend configuration
    DB_BACKEND = os.getenv("DB_BACKEND", "local")  # 'local' or 'turso'
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///seoaudit.db")
    TURSO_DATABASE_URL = os.getenv("TURSO_DATABASE_URL")  # e.g., libsql://your-db.turso.io
    TURSO_AUTH_TOKEN = os.getenv("TURSO_AUTH_TOKEN")

    USER_AGENT = os.getenv("USER_AGENT", DEFAULT_USER_AGENT)


settings = Settings()


def _provider_key(provider: str) -> Optional[str]:
    if provider == "anthropic":
        return os.getenv("ANTHROPIC_API_KEY") or os.getenv("LLM_API_KEY")
    return os.getenv("OPENAI_API_KEY") or os.getenv("LLM_API_KEY")


@dataclass
class Config:
    """Runtime configuration for the audit pipeline."""
    llm_api_key: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    llm_provider: str = "openai"
    llm_max_tokens: int = 3000
    user_agent: str = DEFAULT_USER_AGENT
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    llm_timeout: float = DEFAULT_LLM_TIMEOUT_SECONDS
    persist_timeout: float = DEFAULT_PERSIST_TIMEOUT_SECONDS
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    max_batch_pages: int = DEFAULT_MAX_BATCH_PAGES
    log_level: str = "INFO"
    db_backend: str = "local"
    database_url: str = "sqlite:///seoaudit.db"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config: Configuration instance with values from environment
        """
        provider = os.getenv("LLM_PROVIDER", "openai")
        return cls(
            llm_api_key=_provider_key(provider),
            llm_model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
            llm_provider=provider,
            llm_max_tokens=int(os.getenv("LLM_MAX_TOKENS", "3000")),
            user_agent=os.getenv("USER_AGENT", DEFAULT_USER_AGENT),
            fetch_timeout=float(os.getenv("FETCH_TIMEOUT", str(DEFAULT_FETCH_TIMEOUT_SECONDS))),
            llm_timeout=float(os.getenv("LLM_TIMEOUT", str(DEFAULT_LLM_TIMEOUT_SECONDS))),
            persist_timeout=float(os.getenv("PERSIST_TIMEOUT", str(DEFAULT_PERSIST_TIMEOUT_SECONDS))),
            max_concurrency=int(os.getenv("MAX_CONCURRENCY", str(DEFAULT_MAX_CONCURRENCY))),
            max_batch_pages=int(os.getenv("MAX_BATCH_PAGES", str(DEFAULT_MAX_BATCH_PAGES))),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            db_backend=os.getenv("DB_BACKEND", "local"),
            database_url=os.getenv("DATABASE_URL", "sqlite:///seoaudit.db"),
        )

    def require_llm_key(self) -> str:
        """Return the LLM API key or raise ConfigError.

        Raises:
            ConfigError: If no key is configured for the selected provider
        """
        if not self.llm_api_key:
            env_name = "ANTHROPIC_API_KEY" if self.llm_provider == "anthropic" else "OPENAI_API_KEY"
            raise ConfigError(f"{env_name} is not configured")
        return self.llm_api_key


@dataclass
class RubricThresholds:
    """Configurable thresholds for the page grading rubric."""

    # Title tag (characters)
    title_min: int = 40
    title_max: int = 65

    # Meta description (characters)
    meta_description_min: int = 140
    meta_description_max: int = 165

    # Heading structure
    heading_structure_min_h2: int = 3

    # Schema markup
    schema_rich_types: int = 2

    # Keyword optimization
    keyword_strong_positions: int = 3
    keyword_strong_mentions: int = 3
    keyword_good_positions: int = 2

    # Content volume (words)
    content_words_a: int = 2000
    content_words_b: int = 1000
    content_words_c: int = 500
    content_words_d: int = 300

    # Internal linking (links)
    internal_links_a: int = 10
    internal_links_b: int = 5
    internal_links_c: int = 2

    # Image optimization
    image_alt_ratio_b: float = 0.7

    # Accessibility
    form_label_coverage_good: float = 0.9

    # Render blocking (blocking scripts + blocking stylesheets)
    render_blocking_b: int = 2
    render_blocking_c: int = 4
    render_blocking_d: int = 6

    # Image loading
    lazy_load_threshold: int = 3  # Images after this position should be lazy
    image_loading_good_ratio: float = 0.9
    image_loading_fair_ratio: float = 0.7
    image_loading_poor_ratio: float = 0.5

    # Third-party domains
    third_party_a: int = 3
    third_party_b: int = 6
    third_party_c: int = 10
    third_party_d: int = 20

    @classmethod
    def from_env(cls) -> "RubricThresholds":
        """Load thresholds from environment variables.

        Environment variables should be prefixed with SEOAUDIT_THRESHOLD_
        e.g., SEOAUDIT_THRESHOLD_TITLE_MIN=45

        Returns:
            RubricThresholds with values from environment
        """
        thresholds = cls()
        prefix = "SEOAUDIT_THRESHOLD_"

        for field_name in thresholds.__dataclass_fields__:
            env_key = f"{prefix}{field_name.upper()}"
            env_value = os.getenv(env_key)

            if env_value is not None:
                field_type = thresholds.__dataclass_fields__[field_name].type
                try:
                    if field_type in (int, "int"):
                        setattr(thresholds, field_name, int(env_value))
                    elif field_type in (float, "float"):
                        setattr(thresholds, field_name, float(env_value))
                except ValueError:
                    pass  # Keep default if conversion fails

        return thresholds

    @classmethod
    def from_file(cls, path: str) -> "RubricThresholds":
        """Load thresholds from a JSON configuration file.

        Args:
            path: Path to JSON configuration file

        Returns:
            RubricThresholds with values from file
        """
        thresholds = cls()
        file_path = Path(path)

        if not file_path.exists():
            return thresholds

        with open(file_path, 'r') as f:
            config = json.load(f)

        threshold_config = config.get('thresholds', config)

        for field_name in thresholds.__dataclass_fields__:
            if field_name in threshold_config:
                setattr(thresholds, field_name, threshold_config[field_name])

        return thresholds

    def to_dict(self) -> dict:
        """Convert thresholds to dictionary.

        Returns:
            Dictionary of all threshold values
        """
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }


# Global default thresholds instance
default_thresholds = RubricThresholds()
