"""Error taxonomy for the digest pipeline.

DigestError is the common base so callers can catch everything the pipeline
raises on purpose without also catching programming errors.

ConfigError:
    The digest definition is missing, unreachable, or unparsable. Fatal.

NotFoundError:
    The target user does not exist. Fatal, the run is recorded as failed.

ProviderError:
    A search, LLM, speech, user-directory, or notification call failed.

PersistenceError:
    A cache or object-storage write failed.

An empty candidate set is not an error: it ends the run successfully with
an empty digest.
"""


class DigestError(Exception):
    """Base class for expected pipeline failures."""


class ConfigError(DigestError):
    """Digest definition could not be loaded."""


class NotFoundError(DigestError):
    """A required entity (usually the user) does not exist."""


class ProviderError(DigestError):
    """An external service call failed."""


class PersistenceError(DigestError):
    """A cache or storage write failed."""
