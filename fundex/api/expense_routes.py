"""
API routes for expense receipts.

Endpoints:
- POST /expenses/analyze - OCR + fraud score for a receipt (nothing stored)
- POST /expenses/{expense_id}/approve - Admin approves an expense
- POST /expenses/{expense_id}/flag - Admin flags an expense
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from fundex.api.deps import get_pipeline
from fundex.pipelines.bill_analysis import ReceiptPipeline
from fundex.schemas.receipt import InvalidExpenseInput

logger = logging.getLogger(__name__)

# OCR is blocking; keep it off the event loop
_ocr_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="ocr")

router = APIRouter(prefix="/expenses", tags=["expenses"])


class AnalyzeExpenseRequest(BaseModel):
    image_ref: str
    claimed_amount: float
    remaining_budget: Optional[float] = None


class VerifyExpenseRequest(BaseModel):
    verified_by: Optional[str] = None
    reason: Optional[str] = None


@router.post("/analyze")
async def analyze_expense(
    body: AnalyzeExpenseRequest,
    pipeline: ReceiptPipeline = Depends(get_pipeline),
):
    """
    Score one receipt against a claimed amount.

    Returns the fraud analysis plus what was extracted from the receipt.
    """
    loop = asyncio.get_running_loop()
    try:
        result = await loop.run_in_executor(
            _ocr_executor,
            partial(pipeline.analyze_receipt, body.image_ref, body.claimed_amount, body.remaining_budget),
        )
    except InvalidExpenseInput as e:
        raise HTTPException(status_code=400, detail=str(e))

    response = result.fraud.to_dict()
    response.update({
        "auto_flagged": result.auto_flagged,
        "detected_amount": result.bill.amount,
        "gst_number": result.bill.gst_number,
        "ocr_success": result.bill.success,
        "gst_validation": result.gst_validation.to_dict() if result.gst_validation else None,
        "reliability": result.reliability.to_dict() if result.reliability else None,
    })
    return response


@router.post("/{expense_id}/approve")
def approve_expense(
    expense_id: str,
    body: Optional[VerifyExpenseRequest] = None,
    pipeline: ReceiptPipeline = Depends(get_pipeline),
):
    body = body or VerifyExpenseRequest()
    try:
        expense = pipeline.approve_expense(expense_id, verified_by=body.verified_by)
    except KeyError:
        raise HTTPException(status_code=404, detail="Expense not found")
    return {"success": True, "message": "Expense approved successfully", "expense": expense.model_dump(mode="json")}


@router.post("/{expense_id}/flag")
def flag_expense(
    expense_id: str,
    body: Optional[VerifyExpenseRequest] = None,
    pipeline: ReceiptPipeline = Depends(get_pipeline),
):
    body = body or VerifyExpenseRequest()
    try:
        expense = pipeline.flag_expense(expense_id, reason=body.reason, verified_by=body.verified_by)
    except KeyError:
        raise HTTPException(status_code=404, detail="Expense not found")
    return {"success": True, "message": "Expense flagged successfully", "expense": expense.model_dump(mode="json")}
