"""
Voice Memo Analysis using Gemini

DESIGN DECISION: We use Gemini because:
1. It accepts audio directly; no separate speech-to-text step
2. It supports a strict JSON response schema
3. It handles Korean speech and household vocabulary well

This service handles:
1. Sending one recording plus a fixed instruction to Gemini
2. Parsing the JSON answer
3. Correcting what can be corrected at the boundary:
   - unknown category  -> 미분류
   - impulse score     -> rounded and clamped to 1..10
   - amount            -> rounded to whole won, never negative
4. Rejecting everything else loudly

CRITICAL: The call is all-or-nothing. Either a complete AnalysisResult
comes back or an AnalysisError is raised; nothing partial ever reaches
the ledger. There is no retry here - the user decides whether to resubmit.
"""

import asyncio
import json
import math
import time
from typing import Any, Optional
from uuid import UUID

import google.generativeai as genai
import structlog
from pydantic import BaseModel, ValidationError

from voicemoney.audit import AuditLogger
from voicemoney.config import GeminiSettings, get_settings
from voicemoney.models.transaction import (
    IMPULSE_SCORE_MAX,
    IMPULSE_SCORE_MIN,
    AnalysisResult,
    AudioArtifact,
    Category,
    TransactionType,
)

logger = structlog.get_logger(__name__)


class ConfigurationError(Exception):
    """The analysis service is not configured (missing API key)."""
    pass


class AnalysisError(Exception):
    """Base exception for analysis failures. The same recording may be resubmitted."""
    pass


class MalformedResponseError(AnalysisError):
    """Gemini answered, but not with a usable transaction."""
    pass


class AnalysisTimeoutError(AnalysisError):
    """Gemini did not answer within the configured timeout."""
    pass


ANALYSIS_PROMPT = """
You are a smart financial assistant. Listen to this audio log (in Korean) for a household account book.

Extract the following details:
1. Is it an expense or income?
2. Amount (number only).
3. Merchant/Store name.
4. Payment method (Card, Cash, etc.).
5. Category: Choose strictly from the following list based on the context:
   - 식비 (Food, groceries, snacks)
   - 사업 비용 (Business expenses)
   - 교통/차량 (Transport, fuel, parking, car maintenance)
   - 고정비 (Fixed costs, bills, subscription)
   - 생활/쇼핑 (Living, shopping, beauty, clothes)
   - 여가/외식 (Leisure, dining out, cafe, travel)
   - 건강/의료 (Health, hospital, pharmacy)
   - 교회/교제/경조사 (Relationship, gifts, church, donations)
   - 대출 관련 (Loan, interest)
6. Subcategory: Be specific (e.g., "Coffee", "Taxi").
7. Reason/Excuse: Why was this bought? The user's justification.
8. Emotion: Analyze the voice tone and content to determine the emotion (e.g., Happy, Regretful, Stressed, Neutral).
9. Daily Diary: Summarize the context into a short diary entry format (1-2 sentences).
10. Impulse Score: Rate from 1 (Necessary/Planned) to 10 (Impulsive/Wasteful).
11. Transcript: Transcribe the audio exactly.

If any field is missing or unclear, infer the most logical value or use reasonable defaults (e.g., amount 0 if not heard).
"""

REQUIRED_FIELDS = ("type", "amount", "category", "reason", "impulseScore", "transcript")

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "type": {
            "type": "STRING",
            "format": "enum",
            "enum": [t.value for t in TransactionType],
        },
        "amount": {"type": "NUMBER"},
        "merchant": {"type": "STRING"},
        "method": {"type": "STRING"},
        "category": {
            "type": "STRING",
            "format": "enum",
            "enum": [c.value for c in Category],
        },
        "subcategory": {"type": "STRING"},
        "reason": {"type": "STRING"},
        "emotion": {"type": "STRING"},
        "diary": {"type": "STRING"},
        "impulseScore": {"type": "NUMBER"},
        "transcript": {"type": "STRING"},
    },
    "required": list(REQUIRED_FIELDS),
}

_OPTIONAL_TEXT_FIELDS = ("merchant", "method", "emotion", "diary")


class ValueCorrection(BaseModel):
    """One change made to the model's output before it was accepted."""

    field: str
    original: Any
    corrected: Any


# =============================================================================
# RESPONSE NORMALIZATION (no I/O - unit tested directly)
# =============================================================================

def parse_response_text(text: Optional[str]) -> dict[str, Any]:
    """Parse the raw response body into a JSON object."""
    if not text or not text.strip():
        raise MalformedResponseError("Gemini returned an empty response")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Gemini returned invalid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise MalformedResponseError(
            f"Gemini returned a JSON {type(payload).__name__}, expected an object"
        )
    return payload


def _to_number(field: str, value: Any) -> float:
    if isinstance(value, bool):
        raise MalformedResponseError(f"{field} is not a number: {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.replace(",", "").replace("원", "").strip()
        try:
            number = float(cleaned)
        except ValueError as e:
            raise MalformedResponseError(f"{field} is not a number: {value!r}") from e
    else:
        raise MalformedResponseError(f"{field} is not a number: {value!r}")
    if not math.isfinite(number):
        raise MalformedResponseError(f"{field} is not a finite number: {value!r}")
    return number


def _round_half_up(number: float) -> int:
    return int(math.floor(number + 0.5))


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def normalize_payload(payload: dict[str, Any]) -> tuple[AnalysisResult, list[ValueCorrection]]:
    """
    Turn Gemini's JSON object into an AnalysisResult.

    Returns the result and the list of corrections applied on the way.

    Raises:
        MalformedResponseError: Required keys missing or values unusable
    """
    missing = [key for key in REQUIRED_FIELDS if payload.get(key) is None]
    if missing:
        raise MalformedResponseError(f"Gemini response is missing required fields: {missing}")

    corrections: list[ValueCorrection] = []

    raw_type = payload["type"]
    try:
        transaction_type = TransactionType(_as_text(raw_type).strip())
    except ValueError as e:
        raise MalformedResponseError(f"Unknown transaction type: {raw_type!r}") from e

    raw_amount = _to_number("amount", payload["amount"])
    amount = max(0, _round_half_up(raw_amount))
    if amount != raw_amount:
        corrections.append(ValueCorrection(field="amount", original=payload["amount"], corrected=amount))

    raw_score = _to_number("impulseScore", payload["impulseScore"])
    impulse_score = min(IMPULSE_SCORE_MAX, max(IMPULSE_SCORE_MIN, _round_half_up(raw_score)))
    if impulse_score != raw_score:
        corrections.append(
            ValueCorrection(field="impulseScore", original=payload["impulseScore"], corrected=impulse_score)
        )

    raw_category = payload["category"]
    category = Category.normalize(raw_category)
    if category.value != _as_text(raw_category):
        corrections.append(
            ValueCorrection(field="category", original=raw_category, corrected=category.value)
        )

    subcategory = _as_text(payload.get("subcategory")).strip() or None

    data = {
        "type": transaction_type,
        "amount": amount,
        "category": category,
        "subcategory": subcategory,
        "reason": _as_text(payload["reason"]),
        "impulse_score": impulse_score,
        "transcript": _as_text(payload["transcript"]),
    }
    for field in _OPTIONAL_TEXT_FIELDS:
        data[field] = _as_text(payload.get(field))

    try:
        result = AnalysisResult.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"Gemini response failed validation: {e}") from e
    return result, corrections


# =============================================================================
# SERVICE
# =============================================================================

class GeminiAnalysisService:
    """
    Analysis client for voice memos.

    IMPORTANT BOUNDARIES:
    1. One recording in, one AnalysisResult out - or an exception
    2. The API key is checked before anything leaves the process
    3. Every call is bounded by settings.timeout_seconds
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._model = model
        self._audit_logger = audit_logger

    @property
    def model_name(self) -> str:
        return self._settings.model_name

    def _get_model(self) -> Any:
        """Get or create the Gemini model."""
        if self._model is None:
            genai.configure(api_key=self._settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=self._settings.model_name,
                generation_config={
                    "temperature": self._settings.temperature,
                    "max_output_tokens": self._settings.max_tokens,
                    "response_mime_type": "application/json",
                    "response_schema": RESPONSE_SCHEMA,
                },
            )
        return self._model

    def ensure_configured(self) -> None:
        """
        Raises:
            ConfigurationError: If no API key is set
        """
        if not self._settings.is_configured:
            raise ConfigurationError(
                "Gemini API key is missing. Set GEMINI_API_KEY in the environment or .env file."
            )

    async def analyze(
        self,
        artifact: AudioArtifact,
        correlation_id: Optional[UUID] = None,
    ) -> AnalysisResult:
        """
        Extract a structured transaction from one recording.

        The audio goes inline; the SDK base64-encodes it on the wire.

        Raises:
            ConfigurationError: No API key (nothing is sent)
            AnalysisTimeoutError: No answer within the timeout
            MalformedResponseError: Answer is not a usable transaction
            AnalysisError: Any other failure talking to Gemini
        """
        self.ensure_configured()

        model = self._get_model()
        contents = [
            {"mime_type": artifact.mime_type, "data": artifact.content},
            ANALYSIS_PROMPT,
        ]

        started = time.perf_counter()
        logger.info(
            "gemini_request_start",
            model=self._settings.model_name,
            artifact_id=artifact.artifact_id,
            audio_bytes=artifact.size_bytes,
            mime_type=artifact.mime_type,
            timeout=self._settings.timeout_seconds,
        )
        try:
            response = await asyncio.wait_for(
                model.generate_content_async(contents),
                timeout=self._settings.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise AnalysisTimeoutError(
                f"Gemini did not respond within {self._settings.timeout_seconds:.0f}s"
            ) from e
        except Exception as e:
            raise AnalysisError(f"Gemini request failed: {e}") from e

        try:
            text = response.text
        except ValueError as e:
            # Raised by the SDK when the answer has no text part (blocked, empty)
            raise MalformedResponseError(f"Gemini returned no usable content: {e}") from e

        result, corrections = normalize_payload(parse_response_text(text))

        logger.info(
            "gemini_request_complete",
            artifact_id=artifact.artifact_id,
            elapsed=round(time.perf_counter() - started, 2),
            corrections=len(corrections),
        )
        for correction in corrections:
            logger.warning(
                "gemini_value_corrected",
                field=correction.field,
                original=repr(correction.original),
                corrected=repr(correction.corrected),
            )
            if self._audit_logger:
                self._audit_logger.log_value_corrected(
                    artifact_id=artifact.artifact_id,
                    field=correction.field,
                    original=correction.original,
                    corrected=correction.corrected,
                    correlation_id=correlation_id,
                )
        return result
