"""Environment-driven settings for the Murmur digest pipeline.

Every field of :class:`Config` maps to one environment variable, named in
the comment beside it. Only PROMPT_FILE_URL has no usable default; the
rest point at local development services.

Model selection happens in three layers. A user's preferred model wins.
Otherwise the digest definition's ``model`` key decides, and DIGEST_MODEL
is the last resort ('openai', 'anthropic' or 'random'; empty means
openai). RANKING_ENABLED switches the profile, rank and topic-selection
stages on; without it the first library items are summarized in order.

Log output goes to the console and to LOG_DIR/murmur.log. The file
rotates by size when LOG_MAX_BYTES is set and at midnight otherwise.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TypeVar

T = TypeVar("T")

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _parsed(key: str, default: T, parse: Callable[[str], T]) -> T:
    """Parse a numeric variable; unset or empty means ``default``."""
    raw = os.environ.get(key)
    if not raw:
        return default
    try:
        return parse(raw)
    except ValueError:
        raise ValueError(f"{key} must be a {parse.__name__}, got '{raw}'")


def _env_int(key: str, default: int) -> int:
    return _parsed(key, default, int)


def _env_float(key: str, default: float) -> float:
    return _parsed(key, default, float)


def _env_bool(key: str, default: bool = False) -> bool:
    raw = os.environ.get(key, "").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default


CREATE_DIGEST_JOB = "create-digest"

# UTC, minute hour day month weekday
CRON_PATTERNS = {
    "daily": "30 10 * * *",
    "weekly": "30 10 * * 7",
}


def get_cron_pattern(schedule: str) -> str:
    if schedule not in CRON_PATTERNS:
        raise ValueError(f"Unknown schedule '{schedule}' - must be one of {sorted(CRON_PATTERNS)}")
    return CRON_PATTERNS[schedule]


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
MODEL_CHOICES = ("", "openai", "anthropic", "random")
WEEK_SECONDS = 7 * 24 * 60 * 60


@dataclass
class Config:
    """Pipeline settings. Build with :meth:`load`, check with :meth:`validate`."""

    prompt_file_url: str = ""  # PROMPT_FILE_URL

    # LLM providers
    openai_api_key: str = ""  # OPENAI_API_KEY
    anthropic_api_key: str = ""  # ANTHROPIC_API_KEY
    openai_model: str = "gpt-4o"  # OPENAI_MODEL
    anthropic_model: str = "claude-3-5-sonnet-latest"  # ANTHROPIC_MODEL
    openai_base_url: str = ""  # OPENAI_BASE_URL
    digest_model: str = ""  # DIGEST_MODEL
    ranking_enabled: bool = False  # RANKING_ENABLED

    # Services the pipeline talks to
    search_api_url: str = "http://localhost:4000/api/search"  # SEARCH_API_URL
    users_api_url: str = "http://localhost:4000/api/users"  # USERS_API_URL
    api_token: str = ""  # API_TOKEN
    redis_url: str = "redis://localhost:6379/0"  # REDIS_URL
    bucket_dir: Path = field(default_factory=lambda: Path("bucket"))  # BUCKET_DIR
    push_webhook_url: str = ""  # PUSH_WEBHOOK_URL
    email_webhook_url: str = ""  # EMAIL_WEBHOOK_URL
    email_sender: str = "Murmur <digest@murmur.app>"  # EMAIL_SENDER

    # Speech markup defaults, overridable per request
    speech_voice: str = "en-US-JennyNeural"  # SPEECH_VOICE
    speech_secondary_voice: str = "en-US-GuyNeural"  # SPEECH_SECONDARY_VOICE
    speech_language: str = "en-US"  # SPEECH_LANGUAGE
    speech_rate: str = "1.1"  # SPEECH_RATE

    # Limits
    max_workers: int = 8  # MAX_WORKERS, LLM calls in flight per batch
    request_timeout: float = 30.0  # REQUEST_TIMEOUT
    llm_timeout: float = 180.0  # LLM_TIMEOUT
    digest_ttl_seconds: int = WEEK_SECONDS  # DIGEST_TTL_SECONDS
    max_retries: int = 3  # MAX_RETRIES, total attempts
    retry_base_delay: float = 1.0  # RETRY_BASE_DELAY

    # Logging
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR
    log_level: str = "INFO"  # LOG_LEVEL
    log_backup_count: int = 30  # LOG_BACKUP_COUNT
    log_max_bytes: int = 0  # LOG_MAX_BYTES
    log_format: str = "text"  # LOG_FORMAT, text or json

    # Tracing, needs the logfire extra
    enable_logfire: bool = False  # ENABLE_LOGFIRE
    logfire_token: str = ""  # LOGFIRE_TOKEN

    @classmethod
    def load(cls) -> "Config":
        defaults = cls()
        return cls(
            prompt_file_url=_env("PROMPT_FILE_URL"),
            openai_api_key=_env("OPENAI_API_KEY"),
            anthropic_api_key=_env("ANTHROPIC_API_KEY"),
            openai_model=_env("OPENAI_MODEL", defaults.openai_model),
            anthropic_model=_env("ANTHROPIC_MODEL", defaults.anthropic_model),
            openai_base_url=_env("OPENAI_BASE_URL"),
            digest_model=_env("DIGEST_MODEL").strip().lower(),
            ranking_enabled=_env_bool("RANKING_ENABLED"),
            search_api_url=_env("SEARCH_API_URL", defaults.search_api_url),
            users_api_url=_env("USERS_API_URL", defaults.users_api_url),
            api_token=_env("API_TOKEN"),
            redis_url=_env("REDIS_URL", defaults.redis_url),
            bucket_dir=Path(_env("BUCKET_DIR", str(defaults.bucket_dir))),
            push_webhook_url=_env("PUSH_WEBHOOK_URL"),
            email_webhook_url=_env("EMAIL_WEBHOOK_URL"),
            email_sender=_env("EMAIL_SENDER", defaults.email_sender),
            speech_voice=_env("SPEECH_VOICE", defaults.speech_voice),
            speech_secondary_voice=_env("SPEECH_SECONDARY_VOICE", defaults.speech_secondary_voice),
            speech_language=_env("SPEECH_LANGUAGE", defaults.speech_language),
            speech_rate=_env("SPEECH_RATE", defaults.speech_rate),
            max_workers=_env_int("MAX_WORKERS", defaults.max_workers),
            request_timeout=_env_float("REQUEST_TIMEOUT", defaults.request_timeout),
            llm_timeout=_env_float("LLM_TIMEOUT", defaults.llm_timeout),
            digest_ttl_seconds=_env_int("DIGEST_TTL_SECONDS", defaults.digest_ttl_seconds),
            max_retries=_env_int("MAX_RETRIES", defaults.max_retries),
            retry_base_delay=_env_float("RETRY_BASE_DELAY", defaults.retry_base_delay),
            log_dir=Path(_env("LOG_DIR", str(defaults.log_dir))),
            log_level=_env("LOG_LEVEL", defaults.log_level).upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", defaults.log_backup_count),
            log_max_bytes=_env_int("LOG_MAX_BYTES", defaults.log_max_bytes),
            log_format=_env("LOG_FORMAT", defaults.log_format).lower(),
            enable_logfire=_env_bool("ENABLE_LOGFIRE"),
            logfire_token=_env("LOGFIRE_TOKEN"),
        )

    def validate(self) -> str | None:
        """First configuration problem found, or None when usable."""
        if not self.prompt_file_url:
            return "PROMPT_FILE_URL environment variable is required"
        if self.digest_model not in MODEL_CHOICES:
            return f"Invalid DIGEST_MODEL '{self.digest_model}' - must be openai, anthropic, or random"

        positive = {
            "MAX_WORKERS": self.max_workers,
            "MAX_RETRIES": self.max_retries,
            "REQUEST_TIMEOUT": self.request_timeout,
            "LLM_TIMEOUT": self.llm_timeout,
            "DIGEST_TTL_SECONDS": self.digest_ttl_seconds,
        }
        for name, value in positive.items():
            if value <= 0:
                return f"{name} must be positive"

        if self.log_level not in LOG_LEVELS:
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be one of {', '.join(LOG_LEVELS)}"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0 or self.log_max_bytes < 0:
            return "LOG_BACKUP_COUNT and LOG_MAX_BYTES must not be negative"
        return None
