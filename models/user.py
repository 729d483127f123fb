"""User, request, and response models for digest runs."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.digest import JobState

DEFAULT_CHANNELS = ("push",)


class _Camel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DigestConfig(_Camel):
    """Per-user digest personalization.

    Attributes:
        model: Provider override ('openai', 'anthropic', 'random')
        channels: Notification channels ('push', 'email')
    """

    model: str | None = None
    channels: list[str] | None = None


class User(_Camel):
    """A digest recipient as returned by the user directory."""

    id: str
    email: str = ""
    name: str = ""
    digest_config: DigestConfig | None = None

    @property
    def channels(self) -> list[str]:
        """Configured channels, deduplicated, defaulting to push."""
        configured = self.digest_config.channels if self.digest_config else None
        return list(dict.fromkeys(configured or DEFAULT_CHANNELS))


class CreateDigestRequest(_Camel):
    """Invocation payload of a digest run.

    Attributes:
        id: Optional digest id; generated once per run when missing
        user_id: Target user
        voices: Primary and optional secondary voice
        language: Speech language tag
        rate: Speech rate
        library_item_ids: Explicit item list; bypasses search when given
    """

    id: str | None = None
    user_id: str
    voices: list[str] | None = None
    language: str | None = None
    rate: str | None = None
    library_item_ids: list[str] | None = None


class CreateDigestResponse(_Camel):
    """Result of a digest run."""

    job_id: str
    job_state: JobState = Field(description="SUCCEEDED or FAILED")
