"""
Keywords API router: inspect, teach and reset the learned keywords.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from typing import Optional
import logging

from yachtexpense.dependencies import get_keyword_store, get_learning
from yachtexpense.models.receipt import (
    LearnedKeywordList,
    LearnedKeywordResponse,
    LearnRequest,
    LearnResponse,
    ResetResponse,
)
from yachtexpense.services.keywords import KeywordStore, KeywordStoreError
from yachtexpense.services.learning import LearningFeedback

router = APIRouter(prefix="/keywords", tags=["keywords"])
logger = logging.getLogger(__name__)


@router.get("", response_model=LearnedKeywordList)
async def list_learned_keywords(
    category: Optional[str] = Query(None, description="Filter by category name"),
    keyword_store: KeywordStore = Depends(get_keyword_store),
):
    """List learned keywords, most used first."""
    entries = await run_in_threadpool(keyword_store.learned_keywords)
    if category:
        entries = [entry for entry in entries if entry.category_name == category]

    entries.sort(key=lambda entry: (-entry.usage_count, entry.keyword, entry.category_name))
    return LearnedKeywordList(
        keywords=[LearnedKeywordResponse.from_entry(entry) for entry in entries],
        total=len(entries)
    )


@router.post("/learn", response_model=LearnResponse)
async def learn_keywords(
    request: LearnRequest,
    learning: LearningFeedback = Depends(get_learning),
):
    """
    Record a user-confirmed category for a merchant.

    Returns the keywords that were reinforced; an empty merchant learns nothing.
    """
    try:
        keywords = await run_in_threadpool(learning.learn, request.merchant_name, request.category)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except KeywordStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return LearnResponse(
        merchant_name=request.merchant_name,
        category=request.category,
        keywords=keywords
    )


@router.delete("", response_model=ResetResponse)
async def reset_learned_keywords(
    category: Optional[str] = Query(None, description="Only reset this category"),
    learning: LearningFeedback = Depends(get_learning),
):
    """Forget learned keywords, all of them or a single category's."""
    try:
        removed = await run_in_threadpool(learning.reset, category)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except KeywordStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return ResetResponse(category=category, removed=removed)
