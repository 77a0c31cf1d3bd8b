"""
Prompto — shared configuration
================================
Every script and the read API pull their settings from here.
Values come from the environment with sensible defaults so the
scripts run unchanged against the production project.
"""
import logging
import os
from pathlib import Path


class Config:
    # GCP project settings
    PROJECT_ID           = os.getenv("GCP_PROJECT_ID", "prompto-4b381")
    SERVICE_ACCOUNT_FILE = Path(
        os.getenv("PROMPTO_SERVICE_ACCOUNT")
        or os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
        or "serviceAccountKey.json"
    )

    # Cloud Storage: source JSON lives under DATA_FOLDER
    BUCKET               = os.getenv("PROMPTO_BUCKET", "prompto-4b381.firebasestorage.app")
    DATA_FOLDER          = os.getenv("PROMPTO_DATA_FOLDER", "data/")

    # Firestore collections
    CATEGORIES           = "categories"
    PROMPTS              = "prompts"
    PROMPT_DETAILS       = "promptDetails"

    BATCH_SIZE           = 500   # Firestore max writes per batch

    # Read API
    API_KEY              = os.getenv("PROMPTO_API_KEY", "")
    API_BACKEND          = os.getenv("PROMPTO_API_BACKEND", "firestore")   # firestore | storage
    API_BASE             = os.getenv(
        "PROMPTO_API_BASE", "https://us-central1-prompto-4b381.cloudfunctions.net/api"
    )
    DEFAULT_PAGE_SIZE    = 10
    MAX_PAGE_SIZE        = 100
    CATEGORY_CACHE_TTL_SECONDS = 300

    # Optional explicit file → category name mapping (JSON object)
    CATEGORY_FILE_MAP    = os.getenv("PROMPTO_CATEGORY_FILE_MAP")

    @classmethod
    def collections(cls) -> list[str]:
        return [cls.CATEGORIES, cls.PROMPTS, cls.PROMPT_DETAILS]


LOG_FORMAT = "%(asctime)s  [%(levelname)s]  %(name)s — %(message)s"


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S")


def banner(title: str, char: str = "═", width: int = 62) -> str:
    return f"\n{char * width}\n  {title}\n{char * width}"
