"""
Core Data Models for VoiceMoney

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Keep the persisted JSON format stable
   (camelCase keys, one array of transactions)
3. Make the closed category set structurally impossible to escape

DESIGN DECISION: We use Pydantic v2. Field names are snake_case in Python
and camelCase on the wire via an alias generator.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money. Values are what the model is asked to return."""
    EXPENSE = "지출"
    INCOME = "수입"


class Category(str, Enum):
    """
    Household account book categories.

    DESIGN DECISION: Unknown values resolve to UNCATEGORIZED instead of
    raising. Matching is exact, so a near-miss label ("식비 ", "카페") is
    filed as 미분류; the record is still worth keeping and the user can
    re-classify it.
    """
    FOOD = "식비"
    BUSINESS = "사업 비용"
    TRANSPORT = "교통/차량"
    FIXED = "고정비"
    LIVING = "생활/쇼핑"
    LEISURE = "여가/외식"
    HEALTH = "건강/의료"
    RELATIONSHIP = "교회/교제/경조사"
    LOAN = "대출 관련"
    UNCATEGORIZED = "미분류"

    @classmethod
    def _missing_(cls, value: object) -> "Category":
        return cls.UNCATEGORIZED

    @classmethod
    def normalize(cls, value: Any) -> "Category":
        """Map any value onto the enumeration (never raises)."""
        if isinstance(value, cls):
            return value
        return cls(value)

    @property
    def is_known(self) -> bool:
        return self is not Category.UNCATEGORIZED


CATEGORY_DESCRIPTIONS: dict[Category, list[str]] = {
    Category.FOOD: ["삼끼식사", "홈메이드 간식", "원두"],
    Category.BUSINESS: ["사업 관련 지출"],
    Category.TRANSPORT: ["유류비", "차량보험", "정비비", "교통비", "주차료", "톨비"],
    Category.FIXED: ["관리비", "통신비", "구독료"],
    Category.LIVING: ["소모품", "옷", "미용", "인테리어", "제품"],
    Category.LEISURE: ["군것질", "외식", "카페", "여행", "입장료"],
    Category.HEALTH: ["병원", "약", "비타민"],
    Category.RELATIONSHIP: [
        "현금", "십일조", "집초대(식사)", "동반카페", "부모님용돈", "축의", "부의", "선물",
    ],
    Category.LOAN: ["이자+원금"],
    Category.UNCATEGORIZED: ["기타"],
}

CATEGORY_COLORS: dict[Category, str] = {
    Category.FOOD: "#FF6B6B",
    Category.BUSINESS: "#4D96FF",
    Category.TRANSPORT: "#FFD93D",
    Category.FIXED: "#6BCB77",
    Category.LIVING: "#A66CFF",
    Category.LEISURE: "#FF9F1C",
    Category.HEALTH: "#FF6392",
    Category.RELATIONSHIP: "#2EC4B6",
    Category.LOAN: "#5D6D7E",
    Category.UNCATEGORIZED: "#95A5A6",
}

IMPULSE_SCORE_MIN = 1
IMPULSE_SCORE_MAX = 10


def new_transaction_id() -> str:
    return uuid4().hex


# =============================================================================
# AUDIO
# =============================================================================

class AudioArtifact(BaseModel):
    """
    One finished recording, held in memory until submitted or discarded.

    Immutable: the same artifact can be resubmitted after a failed analysis.
    """
    model_config = ConfigDict(frozen=True)

    artifact_id: str = Field(default_factory=new_transaction_id)
    content: bytes = Field(
        ...,
        min_length=1,
        description="Raw encoded audio"
    )
    mime_type: str = Field(
        default="audio/webm",
        description="Declared media type of content"
    )
    recorded_at: datetime = Field(default_factory=datetime.now)

    @field_validator('mime_type')
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        """Only audio, and without codec parameters ("audio/webm;codecs=opus")."""
        base = v.split(";", 1)[0].strip().lower()
        if not base.startswith("audio/"):
            raise ValueError(f"Unsupported media type for a voice memo: {v}")
        return base

    @property
    def size_bytes(self) -> int:
        return len(self.content)

    @property
    def reference(self) -> str:
        """Session-local handle stored on the transaction as audioUrl."""
        return f"{ARTIFACT_REFERENCE_PREFIX}{self.artifact_id}"


ARTIFACT_REFERENCE_PREFIX = "artifact:"


def artifact_id_from_reference(reference: Optional[str]) -> Optional[str]:
    """Inverse of AudioArtifact.reference; None for anything else."""
    if not reference or not reference.startswith(ARTIFACT_REFERENCE_PREFIX):
        return None
    return reference[len(ARTIFACT_REFERENCE_PREFIX):] or None


# =============================================================================
# TRANSACTIONS
# =============================================================================

class AnalysisResult(BaseModel):
    """
    The eleven fields extracted from one voice memo.

    This is what the analysis service hands back. Ranges are already
    clamped by the service; the constraints here reject anything that
    slipped past it.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    type: TransactionType
    amount: int = Field(
        ...,
        ge=0,
        description="Whole currency units"
    )
    merchant: str = ""
    method: str = ""
    category: Category = Category.UNCATEGORIZED
    subcategory: Optional[str] = None
    reason: str
    emotion: str = ""
    diary: str = ""
    impulse_score: int = Field(
        ...,
        ge=IMPULSE_SCORE_MIN,
        le=IMPULSE_SCORE_MAX,
        description="1 = planned/necessary, 10 = impulsive/wasteful"
    )
    transcript: str

    @field_validator('category', mode='before')
    @classmethod
    def normalize_category(cls, v: Any) -> Category:
        return Category.normalize(v)


class Transaction(AnalysisResult):
    """
    The durable unit of record.

    Created exactly once from an AnalysisResult; every later change goes
    through apply_edit() which marks the record as modified.
    """

    id: str = Field(
        default_factory=new_transaction_id,
        min_length=1,
        description="Opaque unique identifier, never reassigned"
    )
    date: datetime = Field(
        ...,
        description="When the purchase happened, as chosen by the user"
    )
    audio_url: Optional[str] = Field(
        default=None,
        description="Reference to the source recording (current session only)"
    )
    is_modified: bool = Field(
        default=False,
        description="Set on the first saved edit and never cleared"
    )

    @classmethod
    def from_analysis(
        cls,
        result: AnalysisResult,
        date: datetime,
        audio_url: Optional[str] = None,
    ) -> "Transaction":
        """Build a fresh, unmodified transaction with a new identifier."""
        return cls(
            **result.model_dump(),
            id=new_transaction_id(),
            date=date,
            audio_url=audio_url,
            is_modified=False,
        )

    def apply_edit(self, **changes: Any) -> "Transaction":
        """
        Return a copy with the user's changes applied and is_modified set.

        The copy is fully re-validated, so an edit can't smuggle in a
        negative amount or an out-of-range score.
        """
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown transaction fields: {sorted(unknown)}")
        if "id" in changes and changes["id"] != self.id:
            raise ValueError("Transaction id cannot be changed")

        data = self.model_dump()
        data.update(changes)
        data["is_modified"] = True
        return type(self).model_validate(data)

    def to_storage_dict(self) -> dict:
        """JSON-ready dict in the persisted (camelCase) layout."""
        return self.model_dump(mode="json", by_alias=True)


TransactionList = TypeAdapter(list[Transaction])


def dump_transactions(transactions: list[Transaction]) -> str:
    """Serialize a collection to the Local Store format (one JSON array)."""
    return TransactionList.dump_json(transactions, by_alias=True).decode("utf-8")


def load_transactions(blob: str | bytes) -> list[Transaction]:
    """Parse a Local Store blob. Raises pydantic.ValidationError when malformed."""
    return TransactionList.validate_json(blob)
