"""Run-scoped context passed explicitly to every pipeline stage.

Each digest run builds exactly one RunContext after the definition is
loaded and the model is selected. It is frozen and never stored at module
level, so concurrent runs in one process cannot see each other's
definition or randomness.
"""

import random
from dataclasses import dataclass, field

from models.definition import DigestDefinition
from tools.speech import SpeechOptions


@dataclass(frozen=True)
class RunContext:
    """Immutable inputs shared by the stages of one run.

    Attributes:
        digest_id: Idempotency key of the run's digest record
        user_id: Digest recipient
        definition: Digest definition loaded for this run
        model: Selected summary provider ('openai' or 'anthropic')
        speech: Voice, language and rate for speech files
        rng: Random source for sampling (seed it in tests)
    """

    digest_id: str
    user_id: str
    definition: DigestDefinition
    model: str
    speech: SpeechOptions
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)
