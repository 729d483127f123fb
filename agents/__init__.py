"""LLM stages of the Murmur digest pipeline.

LLMBackend (OpenAIBackend, AnthropicBackend):
    Prompt-template completion on top of PydanticAI agents.

ProfileBuilder:
    Cached preference profile from the user's recent reading.

Ranker:
    Orders candidates against the profile; choose_ranked_selections
    applies the topic diversity cap.

Summarizer:
    One summary per selected item; filter_summaries is the quality gate.

Example:
    >>> from agents import create_backend, Summarizer
    >>> summarizer = Summarizer(create_backend("openai", config))
"""

from agents.backends import AnthropicBackend, LLMBackend, OpenAIBackend, create_backend
from agents.profile import ProfileBuilder
from agents.ranker import Ranker, choose_ranked_selections
from agents.summarizer import Summarizer, filter_summaries, select_model

__all__ = [
    "LLMBackend",
    "OpenAIBackend",
    "AnthropicBackend",
    "create_backend",
    "ProfileBuilder",
    "Ranker",
    "choose_ranked_selections",
    "Summarizer",
    "filter_summaries",
    "select_model",
]
