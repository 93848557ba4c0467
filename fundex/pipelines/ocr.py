# fundex/pipelines/ocr.py
"""
Receipt OCR.

Turns an uploaded receipt image (URL or local path) into plain text.
Supports two engines with automatic selection:
1. EasyOCR (better accuracy, heavy model download on first use)
2. Tesseract via pytesseract (lighter fallback)

This is a single best-effort attempt: any failure is logged and None is
returned, so the rest of the pipeline degrades to "no text available".
"""

from io import BytesIO
from pathlib import Path
from typing import Optional
import logging

import requests
from PIL import Image, ImageOps
import numpy as np

from fundex.config.settings import FundexConfig

logger = logging.getLogger(__name__)

# Try to import EasyOCR (better accuracy)
try:
    import easyocr
    HAS_EASYOCR = True
except ImportError:
    easyocr = None
    HAS_EASYOCR = False

# Try to import Tesseract (fallback)
try:
    import pytesseract
    from pytesseract import TesseractNotFoundError  # type: ignore
    HAS_TESSERACT = True
except ImportError:
    pytesseract = None  # type: ignore
    TesseractNotFoundError = None  # type: ignore
    HAS_TESSERACT = False

# Tesseract language codes -> EasyOCR language codes
_EASYOCR_LANGS = {"eng": "en", "hin": "hi"}


class TextExtractor:
    """
    Best-effort OCR over a receipt image.

    The EasyOCR reader is loaded lazily per extractor instance since it
    downloads ~500MB of models the first time.
    """

    def __init__(
        self,
        config: Optional[FundexConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or FundexConfig.from_env()
        self.session = session or requests.Session()
        self._easyocr_reader = None

    # ------------------------------------------------------------------
    # Engine selection
    # ------------------------------------------------------------------

    def _select_engine(self) -> Optional[str]:
        engine = self.config.ocr_engine
        if engine == "easyocr" and HAS_EASYOCR:
            return "easyocr"
        if engine == "tesseract" and HAS_TESSERACT:
            return "tesseract"
        if engine == "auto":
            if HAS_EASYOCR:
                return "easyocr"
            if HAS_TESSERACT:
                return "tesseract"
        if HAS_TESSERACT:
            logger.warning(f"OCR engine '{engine}' unavailable, using Tesseract")
            return "tesseract"
        return None

    def _get_easyocr_reader(self):
        if self._easyocr_reader is None:
            logger.info("Loading EasyOCR reader (first time may download ~500MB models)...")
            lang = _EASYOCR_LANGS.get(self.config.ocr_lang, "en")
            self._easyocr_reader = easyocr.Reader([lang], gpu=False)
            logger.info("✅ EasyOCR reader loaded")
        return self._easyocr_reader

    # ------------------------------------------------------------------
    # Image loading
    # ------------------------------------------------------------------

    def _load_image(self, image_location: str) -> Image.Image:
        if image_location.startswith(("http://", "https://")):
            resp = self.session.get(image_location, timeout=self.config.ocr_download_timeout)
            resp.raise_for_status()
            img = Image.open(BytesIO(resp.content))
        else:
            path = Path(image_location)
            if not path.exists():
                raise FileNotFoundError(f"Receipt image not found: {path}")
            img = Image.open(path)

        # Respect camera orientation before OCR
        img = ImageOps.exif_transpose(img)
        if img.mode != "RGB":
            img = img.convert("RGB")
        return img

    # ------------------------------------------------------------------
    # OCR
    # ------------------------------------------------------------------

    def _run_easyocr(self, img: Image.Image) -> str:
        reader = self._get_easyocr_reader()
        results = reader.readtext(np.array(img), detail=0)
        return "\n".join(results)

    def _run_tesseract(self, img: Image.Image) -> str:
        return pytesseract.image_to_string(img, lang=self.config.ocr_lang) or ""

    def extract(self, image_location: Optional[str]) -> Optional[str]:
        """
        OCR a receipt image.

        Args:
            image_location: http(s) URL or local path of the image

        Returns:
            Extracted text, or None if anything went wrong
        """
        if not image_location:
            logger.warning("No image location given to OCR")
            return None

        engine = self._select_engine()
        if engine is None:
            logger.warning("No OCR engine available (install easyocr or pytesseract)")
            return None

        try:
            logger.info(f"🔍 Starting OCR extraction ({engine})...")
            img = self._load_image(image_location)
            logger.info("OCR Progress: image loaded")

            if engine == "easyocr":
                text = self._run_easyocr(img)
            else:
                text = self._run_tesseract(img)

            if not text.strip():
                logger.warning(f"OCR returned empty text for {image_location}")
                return None

            logger.info(f"✅ OCR extraction completed ({len(text)} characters)")
            return text
        except Exception as e:
            if TesseractNotFoundError is not None and isinstance(e, TesseractNotFoundError):
                logger.warning("Tesseract binary not found in PATH")
                return None
            logger.error(f"❌ OCR error for {image_location}: {e}")
            return None


def extract_text_from_image(image_location: str, config: Optional[FundexConfig] = None) -> Optional[str]:
    """Convenience wrapper for one-off OCR."""
    return TextExtractor(config=config).extract(image_location)
