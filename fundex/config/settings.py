"""
Runtime configuration for the Fundex trust engine.

Every knob can be set through the environment so the same code runs in
local dev (SQLite, no registry) and in production.
"""

import os
from typing import Optional, Literal
from dataclasses import dataclass


DEFAULT_GST_REGISTRY_URL = "https://696a9db03a2b2151f8487cef.mockapi.io/gst/gstNumber"


@dataclass
class FundexConfig:
    """Configuration for OCR, GST registry, trust-score cache and storage."""

    # OCR settings
    ocr_engine: Literal["auto", "easyocr", "tesseract"] = "auto"
    ocr_lang: str = "eng"
    ocr_download_timeout: int = 15

    # GST registry settings (empty URL disables the online lookup)
    gst_registry_url: Optional[str] = DEFAULT_GST_REGISTRY_URL
    gst_registry_timeout: float = 5.0

    # Trust score settings
    trust_cache_ttl_hours: float = 24.0
    trust_score_workers: int = 4

    # Storage / tuning
    db_path: str = "data/fundex.db"
    scoring_tables_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "FundexConfig":
        """Load config from environment variables."""
        registry_url = os.getenv("GST_REGISTRY_URL", DEFAULT_GST_REGISTRY_URL).strip()

        return cls(
            ocr_engine=os.getenv("OCR_ENGINE", "auto").lower(),
            ocr_lang=os.getenv("OCR_LANG", "eng"),
            ocr_download_timeout=int(os.getenv("OCR_DOWNLOAD_TIMEOUT", "15")),
            gst_registry_url=registry_url or None,
            gst_registry_timeout=float(os.getenv("GST_REGISTRY_TIMEOUT", "5")),
            trust_cache_ttl_hours=float(os.getenv("TRUST_SCORE_CACHE_TTL_HOURS", "24")),
            trust_score_workers=int(os.getenv("TRUST_SCORE_WORKERS", "4")),
            db_path=os.getenv("FUNDEX_DB_PATH", "data/fundex.db"),
            scoring_tables_path=os.getenv("FUNDEX_SCORING_TABLES") or None,
        )
