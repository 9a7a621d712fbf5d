"""kintree: family tree records and relationship graph backend."""

from __future__ import annotations

import logging
import os
import time
from collections import deque
from contextlib import asynccontextmanager
from threading import Lock

import psutil
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kintree.db import APPLY_SCHEMA, apply_schema, close_pool, get_pool, get_stats, init_pool

logger = logging.getLogger("kintree")

HOST = os.environ.get("KT_HOST", "127.0.0.1")
PORT = int(os.environ.get("KT_PORT", "9820"))


# ---------------------------------------------------------------------------
# RateCounter: thread-safe sliding-window request counter
# ---------------------------------------------------------------------------

class RateCounter:
    """Count events in a sliding window and expose per-second rate."""

    def __init__(self, window: float = 60.0) -> None:
        self._window = window
        self._lock = Lock()
        self._timestamps: deque[float] = deque()

    def record(self) -> None:
        now = time.monotonic()
        with self._lock:
            self._timestamps.append(now)

    def _prune(self, now: float) -> None:
        cutoff = now - self._window
        while self._timestamps and self._timestamps[0] < cutoff:
            self._timestamps.popleft()

    def rate(self) -> float:
        now = time.monotonic()
        with self._lock:
            self._prune(now)
            count = len(self._timestamps)
        return count / self._window if self._window else 0.0


request_counter = RateCounter(window=60.0)
_start_time: float = 0.0


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    global _start_time
    _start_time = time.time()

    await init_pool()
    logger.info("Database pool initialized")
    if APPLY_SCHEMA:
        await apply_schema()

    yield

    await close_pool()
    logger.info("Database pool closed")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="kintree",
    version="0.1.0",
    description="Family tree records with a positioned relationship graph",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request counting middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def count_requests(request: Request, call_next):
    request_counter.record()
    return await call_next(request)


# ---------------------------------------------------------------------------
# Include routers
# ---------------------------------------------------------------------------

from kintree.accounts.routes import router as accounts_router  # noqa: E402
from kintree.trees.routes import router as trees_router  # noqa: E402

app.include_router(accounts_router)
app.include_router(trees_router)


# ---------------------------------------------------------------------------
# Core routes
# ---------------------------------------------------------------------------

@app.get("/")
async def root():
    return {"message": "Family Tree API is running"}


@app.get("/health")
async def health():
    """Health check, returns DB connectivity status."""
    result: dict = {"status": "ok"}
    try:
        p = get_pool()
        db_ok = await p.fetchval("SELECT 1")
        result["database"] = "connected" if db_ok == 1 else "unexpected"
    except RuntimeError:
        result["database"] = "pool_not_initialized"
    except Exception as exc:
        result["status"] = "degraded"
        result["database"] = f"error: {exc}"
    return result


@app.get("/metrics")
async def metrics():
    """Process, content and database metrics for kintree."""
    try:
        p = get_pool()
        now = time.time()
        process = psutil.Process(os.getpid())
        mem = process.memory_info()

        # -- System metrics ---------------------------------------------------

        uptime = now - _start_time if _start_time else 0.0
        rps = request_counter.rate()

        result: list[dict] = [
            {
                "key": "uptime",
                "label": "Uptime",
                "value": round(uptime),
                "unit": "seconds",
            },
            {
                "key": "rps",
                "label": "Requests / sec",
                "value": round(rps, 2),
                "unit": "req/s",
                "warn_above": 200,
            },
            {
                "key": "memory_rss",
                "label": "Memory (RSS)",
                "value": round(mem.rss / 1_048_576, 1),
                "unit": "MB",
                "warn_above": 512,
            },
            {
                "key": "memory_vms",
                "label": "Memory (VMS)",
                "value": round(mem.vms / 1_048_576, 1),
                "unit": "MB",
            },
            {
                "key": "cpu_percent",
                "label": "CPU usage",
                "value": process.cpu_percent(interval=0),
                "unit": "%",
                "warn_above": 90,
            },
        ]

        # -- Content metrics --------------------------------------------------

        stats = await get_stats()

        result.extend([
            {"key": "total_users", "label": "Users", "value": stats["total_users"], "unit": "users"},
            {"key": "total_trees", "label": "Family trees", "value": stats["total_trees"], "unit": "trees"},
            {"key": "public_trees", "label": "Public trees", "value": stats["public_trees"], "unit": "trees"},
            {"key": "total_members", "label": "Family members", "value": stats["total_members"], "unit": "members"},
        ])

        avg_members = (
            round(stats["total_members"] / stats["total_trees"], 1) if stats["total_trees"] else 0
        )
        result.append({
            "key": "avg_members_per_tree",
            "label": "Avg members/tree",
            "value": avg_members,
            "unit": "avg",
        })

        # Member breakdown by relation category
        for category, count in stats["members_by_category"].items():
            result.append({
                "key": f"members_{category}",
                "label": f"Members ({category})",
                "value": count,
                "unit": "members",
            })

        # -- Database health --------------------------------------------------

        db_size = await p.fetchval(
            "SELECT pg_database_size(current_database())"
        )
        result.append({
            "key": "db_size",
            "label": "Database size",
            "value": round(db_size / 1_048_576, 1) if db_size else 0,
            "unit": "MB",
        })

        active_conns = await p.fetchval(
            "SELECT COUNT(*) FROM pg_stat_activity WHERE datname = current_database()"
        )
        result.append({
            "key": "db_connections",
            "label": "DB connections",
            "value": active_conns or 0,
            "unit": "conns",
            "warn_above": 50,
        })

        return {"metrics": result}

    except Exception as exc:
        logger.exception("Error fetching metrics")
        return JSONResponse(
            status_code=500,
            content={"metrics": [], "error": f"Database error: {exc}"},
        )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

def run() -> None:
    uvicorn.run("kintree.app:app", host=HOST, port=PORT, reload=False)


if __name__ == "__main__":
    run()
