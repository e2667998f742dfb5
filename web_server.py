#!/usr/bin/env python3
"""
FastAPI Web Server for the DEX Spread Dashboard
Serves the latest cycle published by the runner: venue prices, top spreads,
warnings and simulated ledger stats, plus Prometheus metrics
"""

import os
import threading
import time
from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from arbwatch.metrics import SpreadMetrics
from arbwatch.utils import get_logger
from arbwatch.version import __version__
from dexsim.feed import DASHBOARD_SPREAD_LIMIT, DashboardFeed

logger = get_logger(__name__)

app = FastAPI(title="DEX Spread Dashboard", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Pydantic models for API responses
class PricePoint(BaseModel):
    dex: str
    price: float


class SpreadInfo(BaseModel):
    buy: str
    sell: str
    profit: float


class LedgerInfo(BaseModel):
    status: str
    starting_balance: float
    balance: float
    gross_profit: float
    total_gas: float
    net_profit: float
    trade_count: int
    started_at: float
    total_return_pct: float


class HealthInfo(BaseModel):
    status: str
    version: str
    cycle: int
    updated_at: Optional[float]
    uptime_seconds: int


# Shared with the runner in the same process
feed = DashboardFeed()
metrics = SpreadMetrics()
start_time = time.time()


class DataDiffTracker:
    """
    Remembers the last /data.json payload and returns only changed keys.

    The first request (or one after reset) gets the full payload with
    ``full: true``; later requests get ``full: false`` and only the keys whose
    value changed.
    """

    KEYS = ("prices", "topSpreads", "warnings", "ledger")

    def __init__(self):
        self._lock = threading.Lock()
        self._last: Optional[Dict[str, Any]] = None

    def diff(self, current: Dict[str, Any], force_full: bool = False) -> Dict[str, Any]:
        with self._lock:
            if self._last is None or force_full:
                payload = dict(current)
                payload["full"] = True
            else:
                payload = {k: v for k, v in current.items() if self._last.get(k) != v}
                payload["full"] = False
            self._last = dict(current)
        return payload

    def reset(self) -> None:
        with self._lock:
            self._last = None


diff_tracker = DataDiffTracker()


def current_payload() -> Dict[str, Any]:
    return {
        "prices": feed.prices(),
        "topSpreads": feed.top_spreads(DASHBOARD_SPREAD_LIMIT),
        "warnings": feed.warnings(),
        "ledger": feed.ledger(),
    }


# API Endpoints
@app.get("/api/health", response_model=HealthInfo)
async def health_check():
    """Health check endpoint"""
    return HealthInfo(
        status="healthy",
        version=__version__,
        cycle=feed.cycle,
        updated_at=feed.updated_at,
        uptime_seconds=int(time.time() - start_time),
    )


@app.get("/api/prices")
async def get_prices():
    """Latest valid price per venue"""
    return {"prices": [PricePoint(**p) for p in feed.prices()]}


@app.get("/api/spreads")
async def get_spreads(limit: int = DASHBOARD_SPREAD_LIMIT):
    """Top raw spreads of the latest cycle"""
    limit = max(0, min(limit, DASHBOARD_SPREAD_LIMIT))
    return {"spreads": [SpreadInfo(**s) for s in feed.top_spreads(limit)]}


@app.get("/api/warnings")
async def get_warnings():
    return {"warnings": feed.warnings()}


@app.get("/api/ledger")
async def get_ledger():
    """Simulated ledger stats; null when not simulating"""
    ledger = feed.ledger()
    return {"ledger": LedgerInfo(**ledger) if ledger is not None else None}


@app.get("/data.json")
async def get_data(full: bool = False) -> Dict[str, Any]:
    """Polling feed for the dashboard page; sends only what changed"""
    return diff_tracker.diff(current_payload(), force_full=full)


@app.get("/metrics")
async def get_metrics():
    """Prometheus exposition"""
    return Response(content=metrics.export(), media_type=metrics.content_type)


@app.on_event("startup")
async def startup_event():
    """Run on server startup"""
    logger.info("Starting DEX Spread Dashboard Server")


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "3000"))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
