"""Autonomy: manual tick, price and status endpoints for the dashboard."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ibrl.api.deps import get_engine, get_settings

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/autonomy/tick")
def run_tick(
    owner: Optional[str] = Query(None, max_length=64),
    engine=Depends(get_engine),
):
    """
    Run one engine tick now (sync handler, so it runs in the threadpool).

    With ?owner= only that wallet is evaluated; otherwise all tracked owners.
    """
    owners = [owner.strip()] if owner and owner.strip() else None
    report = engine.tick(owners=owners)
    logger.info(f"[Autonomy] Manual tick: {len(report.proposals_created)} proposal(s) created")
    return report.to_dict()


@router.get("/price")
def get_price(engine=Depends(get_engine)):
    """Current SOL/USD from the oracle (502 when unavailable)."""
    quote = engine.oracle.get_price()
    return {
        "symbol": "SOL/USD",
        "price": quote.price,
        "conf": quote.conf,
        "publish_time": quote.publish_time,
        "source": quote.source,
    }


@router.get("/status")
def get_status(request: Request, engine=Depends(get_engine), settings=Depends(get_settings)):
    scheduler = getattr(request.app.state, "scheduler", None)
    last = engine.last_tick
    return {
        "environment": settings.ENVIRONMENT,
        "autonomy_enabled": settings.AUTONOMY_ENABLED,
        "scheduler_running": bool(scheduler and scheduler.running),
        "ticks_run": scheduler.ticks_run if scheduler else 0,
        "tick_interval_seconds": settings.TICK_INTERVAL_SECONDS,
        "llm_available": request.app.state.extractor.llm_available,
        "last_tick": {
            "started_at": last.started_at,
            "price": last.price,
            "owners_evaluated": len(last.owners),
            "proposals_created": len(last.proposals_created),
            "timed_out": len(last.timed_out),
        } if last else None,
    }
