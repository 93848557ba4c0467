"""
Shared service instances for the API routes.

Built lazily on first use; tests swap them through
`app.dependency_overrides`.
"""

from functools import lru_cache

from fundex.config.settings import FundexConfig
from fundex.pipelines.bill_analysis import BillAnalyzer, ReceiptPipeline
from fundex.pipelines.ocr import TextExtractor
from fundex.repository.record_store import RecordStore, get_record_store
from fundex.trust.aggregator import TrustScoreService
from fundex.validation.gst_validator import GSTValidator


@lru_cache(maxsize=1)
def get_config() -> FundexConfig:
    return FundexConfig.from_env()


@lru_cache(maxsize=1)
def get_store() -> RecordStore:
    return get_record_store(get_config().db_path)


@lru_cache(maxsize=1)
def get_pipeline() -> ReceiptPipeline:
    config = get_config()
    return ReceiptPipeline(
        analyzer=BillAnalyzer(text_extractor=TextExtractor(config=config)),
        validator=GSTValidator.from_config(config),
        store=get_store(),
    )


@lru_cache(maxsize=1)
def get_trust_service() -> TrustScoreService:
    return TrustScoreService.from_config(get_store(), get_config())
