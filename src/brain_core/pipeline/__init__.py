"""Query orchestration pipeline."""

from .prompt_formatter import FormattedPrompt, ProfileAnalysis, PromptFormatter, analyze_profile_relevance
from .query_processor import QueryProcessor
from .schema import DefaultFillPolicy, OutputSchema
from .types import (
    DEFAULT_QUERY,
    Citation,
    GatheredContext,
    QueryConfig,
    QueryOptions,
    QueryResult,
)

__all__ = [
    "DEFAULT_QUERY",
    "Citation",
    "DefaultFillPolicy",
    "FormattedPrompt",
    "GatheredContext",
    "OutputSchema",
    "ProfileAnalysis",
    "PromptFormatter",
    "QueryConfig",
    "QueryOptions",
    "QueryProcessor",
    "QueryResult",
    "analyze_profile_relevance",
]
