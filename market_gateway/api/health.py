# market_gateway/api/health.py
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])

APP_STARTED_AT = time.time()


def _now_meta() -> Dict[str, Any]:
    now_ts = time.time()
    now_dt = datetime.fromtimestamp(now_ts, tz=timezone.utc)
    return {
        "now_unix": int(now_ts),
        "now_iso": now_dt.isoformat().replace("+00:00", "Z"),
        "uptime_s": int(now_ts - APP_STARTED_AT),
    }


def _check_gateway(request: Request) -> Dict[str, Any]:
    client = getattr(request.app.state, "client", None)
    if client is None:
        return {"ok": False, "error": "gateway not initialised"}

    return {
        "ok": True,
        "cache_entries": len(client.cache),
        "single_flight": client.single_flight,
        "fetch_stats": dict(client.fetcher.stats),
    }


@router.get("/live")
async def live():
    return {"status": "ok"}


@router.get("/health")
async def health(request: Request):
    gateway = _check_gateway(request)
    return {
        "status": "ok" if gateway["ok"] else "degraded",
        **_now_meta(),
        "checks": {"gateway": gateway},
    }
