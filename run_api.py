#!/usr/bin/env python3
"""
Serve the Fundex trust engine API.

Routes:
    POST /expenses/analyze              score a receipt against a claimed amount
    POST /expenses/{id}/approve|flag    admin verification
    GET  /trust-score/{org_id}          cached NGO trust score
    GET  /health

Host and port come from FUNDEX_API_HOST / FUNDEX_API_PORT (default
0.0.0.0:8080). Set FUNDEX_API_RELOAD=1 to restart on code changes.
Scoring, OCR and storage settings are read from the environment by
FundexConfig.from_env().
"""

import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "fundex.api.main:app",
        host=os.getenv("FUNDEX_API_HOST", "0.0.0.0"),
        port=int(os.getenv("FUNDEX_API_PORT", "8080")),
        reload=os.getenv("FUNDEX_API_RELOAD", "0") == "1",
        log_level="info",
    )
