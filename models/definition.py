"""Digest definition models.

The digest definition is an externally hosted YAML document describing which
library queries feed a digest and which prompt templates drive the LLM
stages. It is loaded once per run and treated as immutable afterwards, so
every model here is frozen.

Document keys are camelCase (``preferenceSelectors``, ``zeroShot``...);
the models accept both the camelCase aliases and the snake_case names.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Frozen(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Selector(_Frozen):
    """A library query plus how many items it should return.

    Attributes:
        query: Search filter string (opaque to the pipeline)
        count: Target number of results
        reason: Human-readable explanation of why the query is used
    """

    query: str = Field(description="Structured search filter")
    count: int = Field(gt=0, description="Target result count")
    reason: str = Field(default="", description="Why this selector exists")


class ZeroShotDefinition(_Frozen):
    """Prompts for the personalization stages."""

    user_preferences_profile_prompt: str = Field(default="", description="Profile prompt ({titles})")
    rank_prompt: str = Field(default="", description="Rank prompt ({userProfile}, {titles})")


class DigestDefinition(_Frozen):
    """Run-scoped digest configuration.

    Attributes:
        name: Definition name
        preference_selectors: Queries describing what the user engaged with
        candidate_selectors: Queries producing digest candidates
        summary_prompt: Per-item summary template ({title}, {author}, {content})
        zero_shot: Profile and ranking prompts
        model: Optional default provider ('openai', 'anthropic', 'random')
    """

    name: str
    preference_selectors: tuple[Selector, ...] = ()
    candidate_selectors: tuple[Selector, ...] = ()
    content_features_prompt: str = ""
    content_rating_prompt: str = ""
    summary_prompt: str
    assemble_prompt: str = ""
    zero_shot: ZeroShotDefinition = Field(default_factory=ZeroShotDefinition)
    model: str | None = None

    def __str__(self) -> str:
        return (
            f"DigestDefinition('{self.name}', candidates={len(self.candidate_selectors)}, "
            f"preferences={len(self.preference_selectors)}, model={self.model or '-'})"
        )
