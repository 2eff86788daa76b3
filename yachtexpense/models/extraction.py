"""
Value types flowing through the receipt extraction engine.

Everything here is immutable once built; the only state the engine carries
between scans is the learned keyword collection (see services.keywords).
"""

from dataclasses import dataclass, field
from datetime import date as Date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentKind(str, Enum):
    """What kind of document the images show."""
    RECEIPT = "receipt"
    INVOICE = "invoice"


class MatchStrength(str, Enum):
    """Qualitative bucket of a category match score."""
    STRONG = "strong"
    WEAK = "weak"
    NONE = "none"


class ConfidenceLevel(str, Enum):
    """high = amount + category, medium = exactly one, low = neither."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EscalationState(str, Enum):
    """States of the local-vs-remote decision for one receipt."""
    LOCAL_ONLY = "local_only"
    NEEDS_REMOTE = "needs_remote"
    RESOLVED = "resolved"


class ResultSource(str, Enum):
    """Which pipeline produced the final field values."""
    LOCAL = "local"
    REMOTE = "remote"
    MERGED = "merged"


@dataclass(frozen=True)
class RawExtractionInput:
    """
    One scan event: recognized text and/or the ordered page images.

    Images are encoded bytes (JPEG/PNG); the vision adapter re-encodes them.
    """
    text: Optional[str] = None
    images: Tuple[bytes, ...] = ()
    document_kind: DocumentKind = DocumentKind.RECEIPT

    @property
    def has_images(self) -> bool:
        return len(self.images) > 0


@dataclass
class LearnedKeyword:
    """
    A (keyword, category) pair reinforced by user confirmations.

    usage_count starts at 1 and only grows; rows are removed by explicit reset.
    """
    category_name: str
    keyword: str
    usage_count: int = 1
    learned_at: datetime = field(default_factory=_utcnow)
    last_used_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class CategoryMatch:
    """Best category for a text, with its score and strength bucket."""
    category_name: Optional[str]
    score: int
    strength: MatchStrength
    scores: Dict[str, int] = field(default_factory=dict, compare=False)

    @property
    def found(self) -> bool:
        return self.category_name is not None


@dataclass(frozen=True)
class LocalExtraction:
    """Fields the local heuristics pulled out of the OCR text."""
    amount: Optional[Decimal] = None
    date: Optional[Date] = None
    merchant_name: Optional[str] = None


@dataclass(frozen=True)
class RemoteExtraction:
    """Validated fields returned by the remote vision service."""
    amount: Optional[Decimal] = None
    date: Optional[Date] = None
    merchant_name: Optional[str] = None
    category_name: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.amount is None
            and self.date is None
            and self.merchant_name is None
            and self.category_name is None
        )


@dataclass(frozen=True)
class ReceiptExtractionResult:
    """The engine's sole output: one structured expense record per scan."""
    amount: Optional[Decimal]
    date: Optional[Date]
    merchant_name: Optional[str]
    category_name: Optional[str]
    confidence: ConfidenceLevel
    source: ResultSource
    escalation: EscalationState
