import os
from datetime import date
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from app.utils.dates import parse_date
from app.utils.logger import logger

# ----------------------------
# Load .env file (if exists)
# ----------------------------
load_dotenv()

# ----------------------------
# Gemini configuration
# ----------------------------
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_MODEL = "gemini-2.5-flash-preview-05-20"

# First day of the ENEM exam (DD-MM-YYYY)
EXAM_DATE = "03-11-2025"

# ----------------------------
# CORS Allowed Origins
# ----------------------------
ALLOWED_ORIGINS = [
    "http://localhost:3000",
]


class StoreConfig(BaseModel):
    # firestore | memory
    backend: str = "firestore"
    project_id: Optional[str] = None
    credentials_path: Optional[str] = None


class AppConfig(BaseModel):
    """
    Explicit runtime configuration.

    Built once (usually through from_env) and handed to the generative
    client, the store factory, the session bootstrapper and the controller.
    """

    api_key: str = ""
    gemini_model: str = GEMINI_MODEL
    gemini_base_url: str = GEMINI_BASE_URL
    request_timeout: float = 60.0
    max_attempts: int = 5
    backoff_base_seconds: float = 1.0

    store_config: StoreConfig = Field(default_factory=StoreConfig)

    # anonymous | token | local
    identity_mode: str = "anonymous"
    firebase_api_key: str = ""

    exam_date: date = Field(default_factory=lambda: parse_date(EXAM_DATE))
    auto_generate: bool = True
    allowed_origins: List[str] = Field(default_factory=lambda: list(ALLOWED_ORIGINS))

    # live controllers kept in memory, least recently used dropped first
    max_sessions: int = Field(default=1000, ge=1)

    @field_validator("exam_date", mode="before")
    @classmethod
    def parse_exam_date(cls, v):
        """Accept the DD-MM-YYYY form used in EXAM_DATE."""
        if isinstance(v, str):
            return parse_date(v)
        return v

    @classmethod
    def from_env(cls) -> "AppConfig":
        api_key = os.getenv("GEMINI_API_KEY", "")
        if not api_key:
            logger.warning("GEMINI_API_KEY is not set. Plan generation will fall back to the basic plan.")

        firebase_api_key = os.getenv("FIREBASE_API_KEY", "")
        identity_mode = os.getenv("IDENTITY_MODE", "anonymous")
        if identity_mode != "local" and not firebase_api_key:
            logger.warning("FIREBASE_API_KEY is not set. Users will get local anonymous ids.")

        origins = os.getenv("ALLOWED_ORIGINS")

        return cls(
            api_key=api_key,
            gemini_model=os.getenv("GEMINI_MODEL", GEMINI_MODEL),
            gemini_base_url=os.getenv("GEMINI_BASE_URL", GEMINI_BASE_URL),
            request_timeout=float(os.getenv("GEMINI_TIMEOUT", "60")),
            max_attempts=int(os.getenv("GEMINI_MAX_ATTEMPTS", "5")),
            backoff_base_seconds=float(os.getenv("GEMINI_BACKOFF_BASE", "1")),
            store_config=StoreConfig(
                backend=os.getenv("STORE_BACKEND", "firestore"),
                project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
                credentials_path=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or None,
            ),
            identity_mode=identity_mode,
            firebase_api_key=firebase_api_key,
            exam_date=os.getenv("EXAM_DATE", EXAM_DATE),
            auto_generate=os.getenv("AUTO_GENERATE", "true").lower() == "true",
            allowed_origins=origins.split(",") if origins else list(ALLOWED_ORIGINS),
            max_sessions=int(os.getenv("MAX_SESSIONS", "1000")),
        )
