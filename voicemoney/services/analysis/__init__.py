"""Voice memo analysis package."""

from voicemoney.services.analysis.gemini_service import (
    ANALYSIS_PROMPT,
    REQUIRED_FIELDS,
    RESPONSE_SCHEMA,
    AnalysisError,
    AnalysisTimeoutError,
    ConfigurationError,
    GeminiAnalysisService,
    MalformedResponseError,
    ValueCorrection,
    normalize_payload,
    parse_response_text,
)

__all__ = [
    "ANALYSIS_PROMPT",
    "REQUIRED_FIELDS",
    "RESPONSE_SCHEMA",
    "AnalysisError",
    "AnalysisTimeoutError",
    "ConfigurationError",
    "GeminiAnalysisService",
    "MalformedResponseError",
    "ValueCorrection",
    "normalize_payload",
    "parse_response_text",
]
