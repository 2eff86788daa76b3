from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "YachtExpense"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # Remote vision fallback (Anthropic Messages API)
    VISION_API_KEY: str = ""
    VISION_API_URL: str = "https://api.anthropic.com/v1/messages"
    VISION_API_VERSION: str = "2023-06-01"
    VISION_MODEL: str = "claude-haiku-4-5-20251001"
    VISION_MAX_TOKENS_RECEIPT: int = 300
    VISION_MAX_TOKENS_INVOICE: int = 400
    VISION_TIMEOUT_SECONDS: float = 30.0
    VISION_INVOICE_TIMEOUT_SECONDS: float = 60.0

    # Image preparation
    MAX_IMAGE_WIDTH: int = 1200
    JPEG_QUALITY: int = 70
    MAX_IMAGE_BYTES: int = 4_500_000

    # Category matching
    STRONG_MATCH_THRESHOLD: int = 20
    LEARNED_USAGE_CAP: int = 5

    # Keyword learning
    LEARNING_MIN_KEYWORD_LENGTH: int = 3
    LEARNING_MAX_KEYWORDS: int = 3

    # Learned keyword persistence: "memory" or "supabase"
    KEYWORD_STORE_BACKEND: str = "memory"
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""
    LEARNED_KEYWORDS_TABLE: str = "learned_keywords"
    LEARNED_KEYWORDS_RECORD_FUNCTION: str = "record_learned_keyword"

    # Uploads
    MAX_UPLOAD_MB: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
