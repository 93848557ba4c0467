# fundex/pipelines/bill_analysis.py
"""
Receipt pipeline.

    image -> OCR text -> amount + GSTIN -> GST validation
          -> fraud score (+ reliability score) -> persisted Expense

BillAnalyzer covers the extraction half; ReceiptPipeline wires in
validation, scoring and the expense store.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from fundex.models.records import (
    Expense, FraudAnalysisRecord, FundRequestStatus, VerificationStatus,
)
from fundex.pipelines.amount_extraction import AmountExtractor
from fundex.pipelines.fraud_scoring import FraudScorer
from fundex.pipelines.gst_extraction import GSTExtractor
from fundex.pipelines.ocr import TextExtractor
from fundex.pipelines.reliability import ReliabilityScorer
from fundex.repository.record_store import RecordStore
from fundex.schemas.receipt import (
    BillAnalysis, FraudInput, GSTValidationResult, InvalidExpenseInput, ReceiptAnalysis,
)
from fundex.validation.gst_validator import GSTValidator

logger = logging.getLogger(__name__)


def validate_expense_input(image_ref: Optional[str], claimed_amount, remaining_budget=None) -> float:
    """
    Reject inputs the engine should not guess about.

    Returns the claimed amount as a float.
    """
    if not image_ref or not str(image_ref).strip():
        raise InvalidExpenseInput("Receipt image reference is required")

    try:
        claimed = float(claimed_amount)
    except (TypeError, ValueError):
        raise InvalidExpenseInput(f"Claimed amount is not a number: {claimed_amount!r}")

    if math.isnan(claimed) or math.isinf(claimed) or claimed < 0:
        raise InvalidExpenseInput(f"Claimed amount must be a non-negative number, got {claimed_amount!r}")

    if remaining_budget is not None:
        try:
            remaining = float(remaining_budget)
        except (TypeError, ValueError):
            raise InvalidExpenseInput(f"Remaining budget is not a number: {remaining_budget!r}")
        if math.isnan(remaining):
            raise InvalidExpenseInput("Remaining budget is not a number")

    return claimed


def rescore_expense(
    expense: Expense,
    fraud_scorer: Optional[FraudScorer] = None,
    remaining_budget: Optional[float] = None,
) -> Expense:
    """
    Recompute fraud fields from what is already stored on an expense.

    Uses the persisted OCR text, detected amount and GST fields; no OCR
    or registry call is made. Returns an updated copy.
    """
    fraud_scorer = fraud_scorer or FraudScorer()

    gst_validation = None
    if expense.gst_number:
        gst_validation = GSTValidationResult(
            valid=expense.gst_valid is not False,
            found=True,
            format_valid=expense.gst_valid is not False,
            api_verified=expense.gst_api_verified,
            gst_number=expense.gst_number,
            business_name=expense.gst_business_name,
            status=expense.gst_status,
            error=expense.gst_validation_error,
        )
    elif expense.ocr_extracted:
        gst_validation = GSTValidationResult.not_found()

    fraud = fraud_scorer.score(FraudInput(
        claimed_amount=expense.amount_spent,
        detected_amount=expense.detected_amount,
        gst_validation=gst_validation,
        ocr_text=expense.ocr_extracted or None,
        remaining_budget=remaining_budget,
    ))

    return expense.model_copy(update={
        "fraud_score": fraud.score,
        "fraud_risk_level": fraud.risk_level.value,
        "fraud_flags": list(fraud.flags),
        "fraud_analysis": FraudAnalysisRecord(
            flags=list(fraud.flags),
            details=fraud.details,
            recommendation=fraud.recommendation,
        ),
        "updated_at": datetime.utcnow(),
    })


class BillAnalyzer:
    """OCR plus amount and GSTIN extraction for one receipt."""

    def __init__(
        self,
        text_extractor: Optional[TextExtractor] = None,
        amount_extractor: Optional[AmountExtractor] = None,
        gst_extractor: Optional[GSTExtractor] = None,
    ):
        self.text_extractor = text_extractor or TextExtractor()
        self.amount_extractor = amount_extractor or AmountExtractor()
        self.gst_extractor = gst_extractor or GSTExtractor()

    def analyze_text(self, text: Optional[str]) -> BillAnalysis:
        if not text:
            logger.info("❌ No text extracted from image")
            return BillAnalysis(success=False, error="No text extracted from image")

        candidate = self.amount_extractor.extract_candidate(text)
        gst_number = self.gst_extractor.extract_gst(text)

        logger.info(
            f"✅ Bill analysis complete ({len(text)} chars) - "
            f"amount: {candidate.amount if candidate else 'not found'}, GST: {gst_number or 'not found'}"
        )
        return BillAnalysis(
            success=True,
            text=text,
            amount=candidate.amount if candidate else None,
            gst_number=gst_number,
            text_length=len(text),
            amount_candidate=candidate,
        )

    def analyze_bill(self, image_ref: str) -> BillAnalysis:
        logger.info("📄 Starting bill analysis...")
        return self.analyze_text(self.text_extractor.extract(image_ref))


class ReceiptPipeline:
    """
    End-to-end receipt scoring.

    Args:
        analyzer: OCR + extraction
        validator: GST validator (registry optional)
        fraud_scorer / reliability_scorer: scoring tables
        store: record store, needed only for submit/approve/flag
    """

    def __init__(
        self,
        analyzer: Optional[BillAnalyzer] = None,
        validator: Optional[GSTValidator] = None,
        fraud_scorer: Optional[FraudScorer] = None,
        reliability_scorer: Optional[ReliabilityScorer] = None,
        store: Optional[RecordStore] = None,
    ):
        self.analyzer = analyzer or BillAnalyzer()
        self.validator = validator or GSTValidator.from_config()
        self.fraud_scorer = fraud_scorer or FraudScorer()
        self.reliability_scorer = reliability_scorer or ReliabilityScorer()
        self.store = store

    def _validate_gst(self, bill: BillAnalysis) -> Optional[GSTValidationResult]:
        # No text means nothing was checked at all
        if not bill.success:
            return None
        if bill.gst_number:
            return self.validator.validate(bill.gst_number)
        return self.validator.validate_and_extract(bill.text)

    def analyze_receipt(
        self,
        image_ref: str,
        claimed_amount: float,
        remaining_budget: Optional[float] = None,
    ) -> ReceiptAnalysis:
        claimed = validate_expense_input(image_ref, claimed_amount, remaining_budget)
        remaining = float(remaining_budget) if remaining_budget is not None else None

        bill = self.analyzer.analyze_bill(image_ref)
        gst_validation = self._validate_gst(bill)

        fraud = self.fraud_scorer.score(FraudInput(
            claimed_amount=claimed,
            detected_amount=bill.amount,
            gst_validation=gst_validation,
            ocr_text=bill.text,
            remaining_budget=remaining,
        ))
        reliability = self.reliability_scorer.score(
            claimed_amount=claimed,
            detected_amount=bill.amount,
            gst_validation=gst_validation,
            ocr_text=bill.text,
            remaining_budget=remaining,
        )

        return ReceiptAnalysis(
            bill=bill,
            gst_validation=gst_validation,
            fraud=fraud,
            reliability=reliability,
            remaining_budget=remaining,
            auto_flagged=self.fraud_scorer.should_auto_flag(fraud),
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _require_store(self) -> RecordStore:
        if self.store is None:
            raise RuntimeError("ReceiptPipeline has no record store configured")
        return self.store

    def remaining_balance(self, request_id: str, ngo_id: str) -> float:
        """Approved amount minus everything already claimed against the request."""
        store = self._require_store()
        request = store.get_fund_request(request_id)
        if request is None:
            raise InvalidExpenseInput(f"Fund request not found: {request_id}")
        if request.status != FundRequestStatus.APPROVED:
            raise InvalidExpenseInput(f"Fund request {request_id} is not approved")

        spent = sum(e.amount_spent for e in store.list_expenses_for_request(request_id, ngo_id))
        return request.approved_amount - spent

    def submit_expense(
        self,
        ngo_id: str,
        request_id: str,
        image_ref: str,
        claimed_amount: float,
        volunteer_id: Optional[str] = None,
        description: str = "",
        category: str = "general",
        proof_image: Optional[str] = None,
    ) -> Expense:
        """Score a receipt against its fund request and store the expense."""
        store = self._require_store()
        validate_expense_input(image_ref, claimed_amount)

        remaining = self.remaining_balance(request_id, ngo_id)
        analysis = self.analyze_receipt(image_ref, claimed_amount, remaining)

        fraud = analysis.fraud
        gst = analysis.gst_validation
        found_gst = gst is not None and gst.found

        expense = Expense(
            ngo_id=ngo_id,
            request_id=request_id,
            volunteer_id=volunteer_id,
            amount_spent=float(claimed_amount),
            description=description,
            category=category,
            receipt_image=image_ref,
            proof_image=proof_image,
            ocr_extracted=analysis.bill.text or "",
            detected_amount=analysis.bill.amount,
            fraud_flags=list(fraud.flags),
            gst_number=(gst.gst_number if found_gst else None) or analysis.bill.gst_number,
            gst_valid=gst.valid if found_gst else None,
            gst_business_name=gst.business_name if found_gst else None,
            gst_status=gst.status if found_gst else None,
            gst_api_verified=gst.api_verified if found_gst else False,
            gst_validation_error=gst.error if gst is not None else None,
            fraud_score=fraud.score,
            fraud_risk_level=fraud.risk_level.value,
            fraud_analysis=FraudAnalysisRecord(
                flags=list(fraud.flags),
                details=fraud.details,
                recommendation=fraud.recommendation,
            ),
            verification_status=VerificationStatus.FLAGGED if analysis.auto_flagged else VerificationStatus.PENDING,
            flagged_reason=fraud.recommendation if analysis.auto_flagged else None,
        )
        store.save_expense(expense)

        if analysis.auto_flagged:
            logger.warning(f"🚩 Expense {expense.id} auto-flagged (score {fraud.score})")
        logger.info(f"✅ Expense {expense.id} submitted with fraud score {fraud.score}")
        return expense

    def rescore_expense(self, expense: Expense, remaining_budget: Optional[float] = None) -> Expense:
        return rescore_expense(expense, self.fraud_scorer, remaining_budget)

    # ------------------------------------------------------------------
    # Admin verification
    # ------------------------------------------------------------------

    def _get_expense(self, expense_id: str) -> Expense:
        expense = self._require_store().get_expense(expense_id)
        if expense is None:
            raise KeyError(expense_id)
        return expense

    def approve_expense(self, expense_id: str, verified_by: Optional[str] = None) -> Expense:
        expense = self._get_expense(expense_id)
        expense.verification_status = VerificationStatus.APPROVED
        expense.verified_by = verified_by
        expense.verified_at = datetime.utcnow()
        expense.updated_at = expense.verified_at
        self.store.save_expense(expense)
        logger.info(f"🟢 Expense {expense_id} approved")
        return expense

    def flag_expense(self, expense_id: str, reason: Optional[str] = None, verified_by: Optional[str] = None) -> Expense:
        expense = self._get_expense(expense_id)
        expense.verification_status = VerificationStatus.FLAGGED
        expense.flagged_reason = reason or "Flagged for review"
        expense.verified_by = verified_by
        expense.verified_at = datetime.utcnow()
        expense.updated_at = expense.verified_at
        self.store.save_expense(expense)
        logger.info(f"🔴 Expense {expense_id} flagged: {expense.flagged_reason}")
        return expense
