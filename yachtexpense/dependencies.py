"""
FastAPI dependencies exposing the engine objects built in create_app().
"""

from fastapi import Request

from yachtexpense.config import Settings
from yachtexpense.services.extraction import ReceiptExtractionService
from yachtexpense.services.keywords import KeywordStore
from yachtexpense.services.learning import LearningFeedback


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_engine(request: Request) -> ReceiptExtractionService:
    return request.app.state.engine


def get_learning(request: Request) -> LearningFeedback:
    return request.app.state.learning


def get_keyword_store(request: Request) -> KeywordStore:
    return request.app.state.keyword_store
