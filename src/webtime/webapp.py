"""FastAPI application that ingests browser events and serves tracking data."""

from __future__ import annotations

import logging
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from .config import TrackerSettings
from .events import EventPayload
from .focus import blocking_decisions, build_block_rules
from .models import Category, DayRollup
from .paths import get_db_path
from .service import TrackingService

logger = logging.getLogger(__name__)

MAX_OVERVIEW_DAYS = 366


class CategoryPayload(BaseModel):
    category: Category

    model_config = ConfigDict(extra="forbid")


class ResolvePayload(BaseModel):
    domains: Optional[List[str]] = None
    date: Optional[str] = None
    wait_seconds: float = Field(default=0.0, ge=0.0, le=60.0)

    model_config = ConfigDict(extra="forbid")


class SettingsUpdate(BaseModel):
    idleThreshold: Optional[int] = Field(default=None, ge=15)
    dailyGoal: Optional[int] = Field(default=None, ge=0)
    focusModeEnabled: Optional[bool] = None
    groqApiKey: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    service: Optional[TrackingService] = None,
    run_ticks: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    tracking = service or TrackingService(Path(db_path or get_db_path()), settings)

    app = FastAPI(title="WebTime", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.service = tracking

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        if run_ticks:
            tracking.ticks.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        tracking.close()

    @app.post("/api/events")
    def ingest_event(payload: EventPayload, request: Request) -> Dict[str, Any]:
        service: TrackingService = request.app.state.service
        try:
            event = payload.to_event()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        commit = service.tracker.handle(event)
        state = service.tracker.snapshot()
        return {
            "committed": None
            if commit is None
            else {
                "day": commit.day_key,
                "domain": commit.domain,
                "seconds": commit.seconds,
                "visits": commit.visits,
            },
            "active_domain": state.active_domain,
            "is_idle": state.is_idle,
        }

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        service: TrackingService = request.app.state.service
        state = service.tracker.snapshot()
        return {
            "ticks_running": service.ticks.is_running(),
            "database_path": str(service.db_path),
            "tick_seconds": service.tracker.tick_interval.total_seconds(),
            "active_tab_id": state.active_tab_id,
            "active_domain": state.active_domain,
            "segment_start": state.segment_start.isoformat() if state.segment_start else None,
            "is_idle": state.is_idle,
        }

    @app.get("/api/summary")
    def summary(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target UTC date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        service: TrackingService = request.app.state.service
        target_day = _parse_date(date)
        result = service.analytics.rollup(target_day.isoformat())
        unknown = [u.domain for u in result.domains if not service.categorizer.is_cached(u.domain)]
        if unknown:
            service.categorizer.resolve_batch(unknown)
        payload = _rollup_payload(result)
        payload["date"] = target_day.isoformat()
        payload["goal"] = {
            "daily_goal_seconds": service.settings.daily_goal_seconds,
            "progress": service.analytics.goal_progress(
                target_day.isoformat(), service.settings.daily_goal_seconds
            ),
        }
        payload["streak"] = service.analytics.streak(target_day)
        payload["pending_categories"] = unknown
        return payload

    @app.get("/api/overview")
    def overview(
        request: Request,
        start: Optional[str] = Query(
            default=None,
            description="Start date in YYYY-MM-DD format (inclusive).",
        ),
        end: Optional[str] = Query(
            default=None,
            description="End date in YYYY-MM-DD format (inclusive).",
        ),
    ) -> Dict[str, Any]:
        service: TrackingService = request.app.state.service
        start_day = _parse_date(start)
        end_day = _parse_date(end) if end else start_day
        if end_day < start_day:
            raise HTTPException(
                status_code=400, detail="end date must be on or after start date"
            )
        if (end_day - start_day) > timedelta(days=MAX_OVERVIEW_DAYS):
            raise HTTPException(status_code=400, detail="date range is too long")
        result = service.analytics.rollup_range(start_day.isoformat(), end_day.isoformat())
        payload = _rollup_payload(result)
        payload["start"] = start_day.isoformat()
        payload["end"] = end_day.isoformat()
        return payload

    @app.get("/api/tracking-data")
    def tracking_data(request: Request) -> Dict[str, Any]:
        return {"trackingData": request.app.state.service.ledger.snapshot()}

    @app.get("/api/categories")
    def list_categories(request: Request) -> Dict[str, Any]:
        categories = request.app.state.service.categorizer.categories()
        return {
            "domainCategories": {domain: cat.value for domain, cat in sorted(categories.items())},
            "categories": [category.value for category in Category],
        }

    @app.put("/api/categories/{domain}")
    def set_category(domain: str, payload: CategoryPayload, request: Request) -> Dict[str, Any]:
        domain = domain.strip()
        if not domain:
            raise HTTPException(status_code=400, detail="domain is required")
        request.app.state.service.categorizer.set_category(domain, payload.category)
        return {"domain": domain, "category": payload.category.value}

    @app.post("/api/categories/resolve")
    def resolve_categories(payload: ResolvePayload, request: Request) -> Dict[str, Any]:
        service: TrackingService = request.app.state.service
        if payload.domains is not None:
            domains = payload.domains
        else:
            day_key = _parse_date(payload.date).isoformat()
            domains = [usage.domain for usage in service.analytics.rollup(day_key).domains]
        future = service.categorizer.resolve_batch(domains)
        resolved: Dict[str, str] = {}
        if payload.wait_seconds:
            try:
                resolved = {
                    domain: cat.value
                    for domain, cat in future.result(timeout=payload.wait_seconds).items()
                }
            except FutureTimeout:
                logger.info("Classification still running after %ss", payload.wait_seconds)
        return {"pending": not future.done(), "resolved": resolved}

    @app.get("/api/settings")
    def get_settings(request: Request) -> Dict[str, Any]:
        return _settings_payload(request.app.state.service.settings)

    @app.patch("/api/settings")
    def update_settings(payload: SettingsUpdate, request: Request) -> Dict[str, Any]:
        updates = payload.model_dump(exclude_unset=True, exclude_none=True)
        updated = request.app.state.service.update_settings(updates)
        return _settings_payload(updated)

    @app.get("/api/focus/rules")
    def focus_rules(request: Request) -> Dict[str, Any]:
        enabled = request.app.state.service.settings.focus_mode_enabled
        return {"focusModeEnabled": enabled, "rules": build_block_rules(enabled)}

    @app.get("/api/focus/check")
    def focus_check(
        request: Request,
        domain: List[str] = Query(default=[], description="Domains to check."),
    ) -> Dict[str, Any]:
        enabled = request.app.state.service.settings.focus_mode_enabled
        return {"focusModeEnabled": enabled, "blocked": blocking_decisions(domain, enabled)}

    return app


def _parse_date(value: Optional[str]) -> date:
    if not value:
        return datetime.now(timezone.utc).date()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc


def _rollup_payload(result: DayRollup) -> Dict[str, Any]:
    return {
        "totals": {
            "total_seconds": result.total_time,
            "focus_seconds": result.focus_time,
            "distract_seconds": result.distract_time,
            "focus_rate": result.focus_rate,
        },
        "category_totals": {
            category.value: seconds for category, seconds in result.category_totals.items()
        },
        "domains": [
            {
                "domain": usage.domain,
                "seconds": usage.seconds,
                "visits": usage.visits,
                "category": usage.category.value,
            }
            for usage in result.domains
        ],
    }


def _settings_payload(settings: TrackerSettings) -> Dict[str, Any]:
    payload = settings.to_dict()
    del payload["groqApiKey"]
    payload["hasApiKey"] = bool(settings.api_key)
    return payload
