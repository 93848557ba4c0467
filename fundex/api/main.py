# fundex/api/main.py

import logging
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fundex.api.expense_routes import router as expense_router
from fundex.api.trust_routes import router as trust_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Fundex Trust Engine API",
    description="Receipt fraud scoring and NGO trust scores. Reads receipts with OCR, checks GST numbers, scores expenses and aggregates organization trust.",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(expense_router)
app.include_router(trust_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def malformed_request_handler(request: Request, exc: RequestValidationError):
    """Malformed expense input is a client error, reported as 400."""
    logger.warning(f"Rejected malformed request to {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.get("/health", tags=["meta"])
def health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {
        "status": "ok",
        "service": "Fundex",
        "version": "0.1.0",
        "timestamp": datetime.utcnow().isoformat(),
    }
