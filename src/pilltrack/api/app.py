from __future__ import annotations

import logging
from datetime import date
from typing import Callable, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config.loader import Settings, load_settings
from ..ledger import InsufficientInventory, PersistenceFailure, RefillPolicy, StaleStateError, ValidationError
from ..service import LedgerService
from ..store import SQLiteStore

log = logging.getLogger("pilltrack.api")


class SettingsIn(BaseModel):
    name: str
    total_pills: int
    daily_dose: int
    start_date: date


class IntakeIn(BaseModel):
    count: int


class IntakeOut(BaseModel):
    date: str
    count: int


class StateOut(BaseModel):
    name: str
    total_pills: int
    pills_remaining: int
    daily_dose: int
    start_date: str
    version: int
    intake_history: List[IntakeOut]


class SummaryOut(BaseModel):
    days_remaining: int
    run_out_date: str
    percent_remaining: float
    next_refill_date: Optional[str] = None
    runs_out_before_refill: bool


class ForecastPointOut(BaseModel):
    date: str
    remaining: int


class ForecastOut(BaseModel):
    summary: SummaryOut
    points: List[ForecastPointOut]


def _state(service: LedgerService) -> StateOut:
    led = service.ledger
    return StateOut(
        name=led.name,
        total_pills=led.total_pills,
        pills_remaining=led.pills_remaining,
        daily_dose=led.daily_dose,
        start_date=led.start_date.isoformat(),
        version=led.version,
        intake_history=[IntakeOut(date=e.date.isoformat(), count=e.count) for e in led.intake_history],
    )


def create_app(
    store: Optional[SQLiteStore] = None,
    user_id: Optional[str] = None,
    refill_policy: Optional[RefillPolicy] = None,
    horizon_days: Optional[int] = None,
    clock: Optional[Callable[[], date]] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the API. Every request loads the ledger, acts, and saves explicitly."""
    if store is None or user_id is None or horizon_days is None:
        settings = settings or load_settings()
        store = store or SQLiteStore(settings.storage.path)
        user_id = user_id or settings.storage.user_id
        if refill_policy is None:
            refill_policy = settings.forecast.refill_policy()
        if horizon_days is None:
            horizon_days = settings.forecast.horizon_days

    app = FastAPI(title="pilltrack API")

    def get_service() -> LedgerService:
        return LedgerService(store, user_id=user_id, refill_policy=refill_policy, horizon_days=horizon_days, clock=clock)

    @app.exception_handler(ValidationError)
    async def _validation(_request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(InsufficientInventory)
    async def _insufficient(_request, exc: InsufficientInventory):
        return JSONResponse(
            status_code=409,
            content={
                "detail": str(exc),
                "requested": exc.requested,
                "available": exc.available,
                "deficit": exc.deficit,
            },
        )

    @app.exception_handler(PersistenceFailure)
    async def _persistence(_request, exc: PersistenceFailure):
        status = 409 if isinstance(exc, StaleStateError) else 503
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/state", response_model=StateOut)
    def get_state(service: LedgerService = Depends(get_service)):
        return _state(service)

    @app.put("/settings", response_model=StateOut)
    def put_settings(payload: SettingsIn, service: LedgerService = Depends(get_service)):
        service.update_settings(payload.name, payload.total_pills, payload.daily_dose, payload.start_date)
        return _state(service)

    @app.post("/intake", response_model=StateOut)
    def post_intake(payload: IntakeIn, service: LedgerService = Depends(get_service)):
        service.record_intake(payload.count)
        return _state(service)

    @app.post("/reset", response_model=StateOut)
    def post_reset(service: LedgerService = Depends(get_service)):
        service.reset_medicine()
        return _state(service)

    @app.get("/forecast", response_model=ForecastOut)
    def get_forecast(days: Optional[int] = Query(default=None, ge=0, le=366), service: LedgerService = Depends(get_service)):
        s = service.summary()
        if days is None:
            days = service.horizon_days
        points = [ForecastPointOut(date=p.date.isoformat(), remaining=p.remaining) for p in service.forecast(days)]
        return ForecastOut(
            summary=SummaryOut(
                days_remaining=s.days_remaining,
                run_out_date=s.run_out_date.isoformat(),
                percent_remaining=s.percent_remaining,
                next_refill_date=s.next_refill_date.isoformat() if s.next_refill_date else None,
                runs_out_before_refill=s.runs_out_before_refill,
            ),
            points=points,
        )

    return app
