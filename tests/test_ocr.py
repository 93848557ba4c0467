"""
Tests for the OCR wrapper. The OCR engines themselves are mocked.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests
from PIL import Image

sys.path.insert(0, str(Path(__file__).parent.parent))

from fundex.config.settings import FundexConfig
from fundex.pipelines import ocr
from fundex.pipelines.ocr import TextExtractor


@pytest.fixture
def receipt_png(tmp_path):
    path = tmp_path / "receipt.png"
    Image.new("L", (60, 30), color=255).save(path)
    return str(path)


@pytest.fixture
def tesseract_extractor(monkeypatch):
    monkeypatch.setattr(ocr, "HAS_TESSERACT", True)
    monkeypatch.setattr(ocr, "HAS_EASYOCR", False)
    return TextExtractor(config=FundexConfig(ocr_engine="tesseract", gst_registry_url=None))


class TestTextExtractor:

    def test_returns_text(self, tesseract_extractor, receipt_png, monkeypatch):
        run = MagicMock(return_value="Grand Total 550.00")
        monkeypatch.setattr(tesseract_extractor, "_run_tesseract", run)

        assert tesseract_extractor.extract(receipt_png) == "Grand Total 550.00"
        image = run.call_args[0][0]
        assert image.mode == "RGB"

    def test_missing_file_returns_none(self, tesseract_extractor, tmp_path):
        assert tesseract_extractor.extract(str(tmp_path / "nope.png")) is None

    def test_engine_error_returns_none(self, tesseract_extractor, receipt_png, monkeypatch):
        monkeypatch.setattr(tesseract_extractor, "_run_tesseract", MagicMock(side_effect=RuntimeError("boom")))
        assert tesseract_extractor.extract(receipt_png) is None

    def test_blank_text_returns_none(self, tesseract_extractor, receipt_png, monkeypatch):
        monkeypatch.setattr(tesseract_extractor, "_run_tesseract", MagicMock(return_value="  \n "))
        assert tesseract_extractor.extract(receipt_png) is None

    def test_empty_location(self, tesseract_extractor):
        assert tesseract_extractor.extract("") is None
        assert tesseract_extractor.extract(None) is None

    def test_download_failure_returns_none(self, monkeypatch):
        monkeypatch.setattr(ocr, "HAS_TESSERACT", True)
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("offline")
        extractor = TextExtractor(config=FundexConfig(ocr_engine="tesseract"), session=session)

        assert extractor.extract("https://cdn.example/receipt.jpg") is None
        session.get.assert_called_once_with("https://cdn.example/receipt.jpg", timeout=15)

    def test_no_engine_installed(self, monkeypatch, receipt_png):
        monkeypatch.setattr(ocr, "HAS_TESSERACT", False)
        monkeypatch.setattr(ocr, "HAS_EASYOCR", False)
        assert TextExtractor(config=FundexConfig()).extract(receipt_png) is None

    def test_auto_prefers_easyocr(self, monkeypatch):
        monkeypatch.setattr(ocr, "HAS_TESSERACT", True)
        monkeypatch.setattr(ocr, "HAS_EASYOCR", True)
        assert TextExtractor(config=FundexConfig(ocr_engine="auto"))._select_engine() == "easyocr"
