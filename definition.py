"""Digest definition loader.

The definition document is a YAML file hosted at PROMPT_FILE_URL. It lists
the preference and candidate selectors and the prompt templates used by
the LLM stages:

    name: daily-digest
    preferenceSelectors:
      - query: "in:all is:read OR has:highlights sort:updated-desc wordsCount:>=20"
        count: 21
        reason: "recently read or highlighted items"
    candidateSelectors:
      - query: "in:all is:unread saved:last24hrs sort:saved-desc wordsCount:>=500"
        count: 100
        reason: "most recent items saved over 500 words"
    summaryPrompt: "Summarize {title} by {author}: {content}"
    zeroShot:
      userPreferencesProfilePrompt: "..."
      rankPrompt: "..."
    model: random

Every failure mode (unset URL, unreachable host, YAML error, schema error)
is reported as ConfigError. A run cannot continue without a definition.
"""

import logging

import yaml
from pydantic import ValidationError

from config import Config
from errors import ConfigError, ProviderError
from models.definition import DigestDefinition
from tools.http import request
from tools.retry import RetryPolicy

logger = logging.getLogger(__name__)


def parse_definition(text: str) -> DigestDefinition:
    """Parse a YAML definition document.

    Raises:
        ConfigError: If the document is not valid YAML or misses fields
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Digest definition is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Digest definition must be a mapping")
    try:
        return DigestDefinition.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Digest definition is invalid: {e}") from e


async def load_definition(config: Config) -> DigestDefinition:
    """Fetch and parse the digest definition.

    Args:
        config: Configuration providing PROMPT_FILE_URL and retry settings

    Returns:
        Immutable DigestDefinition for this run

    Raises:
        ConfigError: If the definition cannot be obtained
    """
    url = config.prompt_file_url
    if not url:
        msg = "PROMPT_FILE_URL not set"
        logger.error(msg)
        raise ConfigError(msg)

    try:
        text = await request("GET", url, RetryPolicy.from_config(config), as_text=True)
    except ProviderError as e:
        raise ConfigError(f"Digest definition unreachable: {e}") from e

    definition = parse_definition(text)
    logger.info("Definition loaded | %s", definition)
    return definition
