"""
Pydantic models for the HTTP API.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime, date as Date
from decimal import Decimal

from yachtexpense.models.extraction import LearnedKeyword, ReceiptExtractionResult


class ScanRequest(BaseModel):
    """OCR text of one receipt."""
    text: str = Field(..., description="Recognized receipt text")


class ReceiptExtractionResponse(BaseModel):
    """Model for extraction results."""
    amount: Optional[Decimal] = None
    date: Optional[Date] = None
    merchant_name: Optional[str] = None
    category_name: Optional[str] = None
    confidence: str
    source: str
    escalation: str

    class Config:
        from_attributes = True

    @classmethod
    def from_result(cls, result: ReceiptExtractionResult) -> "ReceiptExtractionResponse":
        return cls(
            amount=result.amount,
            date=result.date,
            merchant_name=result.merchant_name,
            category_name=result.category_name,
            confidence=result.confidence.value,
            source=result.source.value,
            escalation=result.escalation.value,
        )


class LearnRequest(BaseModel):
    """A user-confirmed category for a merchant."""
    merchant_name: str = ""
    category: str


class LearnResponse(BaseModel):
    merchant_name: str
    category: str
    keywords: List[str]


class LearnedKeywordResponse(BaseModel):
    """Model for learned keyword API responses."""
    keyword: str
    category_name: str
    usage_count: int
    learned_at: datetime
    last_used_at: datetime

    class Config:
        from_attributes = True

    @classmethod
    def from_entry(cls, entry: LearnedKeyword) -> "LearnedKeywordResponse":
        return cls(
            keyword=entry.keyword,
            category_name=entry.category_name,
            usage_count=entry.usage_count,
            learned_at=entry.learned_at,
            last_used_at=entry.last_used_at,
        )


class LearnedKeywordList(BaseModel):
    keywords: List[LearnedKeywordResponse]
    total: int


class ResetResponse(BaseModel):
    category: Optional[str] = None
    removed: int


class CategoryList(BaseModel):
    categories: List[str]
