from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import logging

from yachtexpense import __version__
from yachtexpense.config import Settings, settings as default_settings
from yachtexpense.models.receipt import CategoryList
from yachtexpense.routers import keywords, receipts
from yachtexpense.services.categorizer import CategoryMatcher
from yachtexpense.services.extraction import ReceiptExtractionService
from yachtexpense.services.keywords import KeywordStore, LearnedKeywordStore, build_learned_store
from yachtexpense.services.learning import LearningFeedback
from yachtexpense.services.parser import ReceiptParser
from yachtexpense.services.vision import RemoteVisionAdapter


def create_app(
    settings: Optional[Settings] = None,
    learned_store: Optional[LearnedKeywordStore] = None,
    vision: Optional[RemoteVisionAdapter] = None,
) -> FastAPI:
    """
    Build the API with one engine instance shared by every request.

    Args:
        settings: Application settings (defaults to the environment)
        learned_store: Learned keyword backend (defaults to KEYWORD_STORE_BACKEND)
        vision: Remote vision adapter (defaults to one built from settings)
    """
    settings = settings or default_settings
    logging.getLogger("yachtexpense").setLevel(settings.LOG_LEVEL.upper())

    keyword_store = KeywordStore(
        learned=learned_store or build_learned_store(settings.KEYWORD_STORE_BACKEND)
    )
    matcher = CategoryMatcher(
        keyword_store,
        strong_threshold=settings.STRONG_MATCH_THRESHOLD,
        usage_cap=settings.LEARNED_USAGE_CAP,
    )
    engine = ReceiptExtractionService(
        keyword_store,
        matcher=matcher,
        parser=ReceiptParser(),
        vision=vision or RemoteVisionAdapter.from_settings(settings),
    )
    learning = LearningFeedback(
        keyword_store,
        min_keyword_length=settings.LEARNING_MIN_KEYWORD_LENGTH,
        max_keywords=settings.LEARNING_MAX_KEYWORDS,
    )

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Receipt interpretation and adaptive categorization engine",
        version=__version__,
        debug=settings.DEBUG,
    )

    app.state.settings = settings
    app.state.keyword_store = keyword_store
    app.state.engine = engine
    app.state.learning = learning

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {
            "message": f"{settings.APP_NAME} API",
            "version": __version__,
            "status": "running"
        }

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    @app.get("/categories", response_model=CategoryList)
    async def list_categories():
        return CategoryList(categories=list(keyword_store.categories))

    app.include_router(receipts.router)
    app.include_router(keywords.router)

    return app


app = create_app()
