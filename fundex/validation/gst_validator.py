"""
GSTIN validation.

Step 1 - format check (length, state code, sentinel 'Z' at offset 13).
Step 2 - best-effort registry lookup.

Only a malformed GSTIN is ever marked invalid. The registry's coverage is
incomplete and the service itself is unreliable, so "not in registry" and
"registry down" both mean valid-but-unverified.
"""

import re
import logging
from typing import Optional, Dict, Any

import requests

from fundex.config.settings import FundexConfig
from fundex.config.scoring_tables import GSTTables, get_scoring_tables
from fundex.pipelines.gst_extraction import GSTExtractor, clean_gst, is_plausible_gst
from fundex.schemas.receipt import GSTValidationResult

logger = logging.getLogger(__name__)

_GST_CHARSET = re.compile(r"^[0-9]{2}[A-Z0-9]{13}$")


class GSTRegistryClient:
    """Client for the GST registry lookup service."""

    def __init__(self, base_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "User-Agent": "fundex/1.0",
        })

    def lookup(self, gst_number: str) -> Optional[Dict[str, Any]]:
        """
        Find the registry record for a GSTIN.

        Returns:
            The record dict, or None if the registry has no such GSTIN

        Raises:
            requests.RequestException: service unreachable or non-200
            ValueError: response is not a JSON list of records
        """
        resp = self.session.get(self.base_url, timeout=self.timeout)
        resp.raise_for_status()

        data = resp.json()
        if not isinstance(data, list):
            raise ValueError(f"Unexpected registry response type: {type(data).__name__}")

        for record in data:
            if not isinstance(record, dict):
                continue
            number = record.get("gstNumber")
            if number and str(number).upper() == gst_number:
                return record
        return None


class GSTValidator:
    """
    Validates GSTINs by format and, when configured, against the registry.

    Args:
        registry: registry client; None means format-only validation
        tables: GST grammar tables
    """

    def __init__(self, registry: Optional[GSTRegistryClient] = None, tables: Optional[GSTTables] = None):
        self.registry = registry
        self.tables = tables or get_scoring_tables().gst
        self.extractor = GSTExtractor(tables=self.tables)

    @classmethod
    def from_config(cls, config: Optional[FundexConfig] = None) -> "GSTValidator":
        config = config or FundexConfig.from_env()
        registry = None
        if config.gst_registry_url:
            registry = GSTRegistryClient(config.gst_registry_url, timeout=config.gst_registry_timeout)
        return cls(registry=registry)

    def validate_format(self, gst_number: Optional[str]) -> bool:
        if not gst_number:
            return False
        clean = clean_gst(gst_number)
        return bool(_GST_CHARSET.match(clean)) and is_plausible_gst(clean, self.tables)

    def validate(self, gst_number: Optional[str]) -> GSTValidationResult:
        if not gst_number:
            return GSTValidationResult(valid=False, found=False, error="GST number is required")

        clean = clean_gst(gst_number)

        if not self.validate_format(clean):
            return GSTValidationResult(
                valid=False,
                format_valid=False,
                gst_number=clean,
                error="Invalid GST number format",
            )

        state_code = clean[:2]

        if self.registry is None:
            return GSTValidationResult(
                valid=True,
                format_valid=True,
                gst_number=clean,
                state_code=state_code,
                error="Registry lookup disabled - format validated only",
            )

        try:
            logger.info(f"🔍 Validating GST {clean} against registry...")
            record = self.registry.lookup(clean)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"⚠️ GST registry lookup failed, falling back to format validation: {e}")
            return GSTValidationResult(
                valid=True,
                format_valid=True,
                gst_number=clean,
                state_code=state_code,
                error="API verification unavailable - format validated only",
            )

        if record is None:
            logger.info(f"GST {clean} not found in registry")
            return GSTValidationResult(
                valid=True,
                format_valid=True,
                gst_number=clean,
                state_code=state_code,
                error="GST number not found in registry (might be new business)",
            )

        logger.info(f"✅ GST {clean} found in registry")
        return GSTValidationResult(
            valid=True,
            format_valid=True,
            api_verified=True,
            gst_number=clean,
            business_name=record.get("businessName") or record.get("name") or "N/A",
            status=record.get("status") or "Active",
            registration_date=record.get("registrationDate"),
            address=record.get("address") or "N/A",
            state_code=state_code,
        )

    def validate_and_extract(self, text: Optional[str]) -> GSTValidationResult:
        """Extract a GSTIN from text, then validate it."""
        extracted = self.extractor.extract_gst(text)
        if not extracted:
            return GSTValidationResult.not_found()
        return self.validate(extracted)
