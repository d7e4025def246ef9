from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from sqlalchemy import desc
from datetime import datetime

from .database import get_db
from .models import WaterBody, WaterTest, ParameterResult, WaterTestAlert
from .orchestrator import HealthOrchestrator
from .records import to_naive_utc
from .schemas import WaterBodyOut, WaterTestCreate, WaterTestOut, AlertOut, HealthOut

router = APIRouter(prefix="/api/v1")

def get_health_orchestrator(request: Request) -> HealthOrchestrator:
    return request.app.state.health

def _ensure_water_body(db: Session, water_body_id: int) -> WaterBody:
    water_body = db.query(WaterBody).filter(WaterBody.id == water_body_id).first()
    if not water_body:
        raise HTTPException(status_code=404, detail="Water body not found")
    return water_body

@router.get("/water-bodies", response_model=list[WaterBodyOut])
def list_water_bodies(db: Session = Depends(get_db)):
    return db.query(WaterBody).order_by(WaterBody.id.asc()).all()

@router.get("/water-bodies/{water_body_id}/health", response_model=HealthOut)
async def water_body_health(
    water_body_id: int,
    response: Response,
    refresh: bool = Query(False),
    wait: bool = Query(True),
    db: Session = Depends(get_db),
    health: HealthOrchestrator = Depends(get_health_orchestrator),
):
    await run_in_threadpool(_ensure_water_body, db, water_body_id)
    if wait or refresh:
        result = await health.get_health(water_body_id, force_refresh=refresh)
    else:
        result = health.peek(water_body_id)
    out = HealthOut.from_result(water_body_id, result)
    if result.state == "unavailable":
        raise HTTPException(status_code=503, detail=out.model_dump(mode="json", by_alias=True))
    if result.is_loading:
        response.status_code = 202
    return out

@router.post("/water-bodies/{water_body_id}/health/invalidate")
def invalidate_health(
    water_body_id: int,
    db: Session = Depends(get_db),
    health: HealthOrchestrator = Depends(get_health_orchestrator),
):
    _ensure_water_body(db, water_body_id)
    health.invalidate(water_body_id)
    return {"ok": True, "water_body_id": water_body_id}

@router.post("/water-bodies/{water_body_id}/tests", response_model=WaterTestOut, status_code=201)
def log_water_test(
    water_body_id: int,
    payload: WaterTestCreate,
    db: Session = Depends(get_db),
    health: HealthOrchestrator = Depends(get_health_orchestrator),
):
    _ensure_water_body(db, water_body_id)

    test = WaterTest(
        water_body_id=water_body_id,
        test_date=to_naive_utc(payload.test_date) or datetime.utcnow(),
        notes=payload.notes,
        parameters=[
            ParameterResult(
                parameter_name=p.parameter_name,
                value=p.value,
                unit=p.unit,
                status=p.status,
            )
            for p in payload.parameters
        ],
    )
    db.add(test)
    db.commit()
    db.refresh(test)

    # New data: the cached score no longer reflects it
    health.invalidate(water_body_id)

    return WaterTestOut(
        id=test.id,
        water_body_id=water_body_id,
        test_date=test.test_date,
        parameter_count=len(test.parameters),
    )

@router.get("/water-bodies/{water_body_id}/alerts", response_model=list[AlertOut])
def water_body_alerts(
    water_body_id: int,
    include_dismissed: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    _ensure_water_body(db, water_body_id)
    q = db.query(WaterTestAlert).filter(WaterTestAlert.water_body_id == water_body_id)
    if not include_dismissed:
        q = q.filter(WaterTestAlert.is_dismissed == False)  # noqa: E712
    return q.order_by(desc(WaterTestAlert.created_at)).limit(limit).all()

@router.post("/alerts/{alert_id}/dismiss", response_model=AlertOut)
def dismiss_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    health: HealthOrchestrator = Depends(get_health_orchestrator),
):
    alert = db.query(WaterTestAlert).filter(WaterTestAlert.id == alert_id).first()
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    if not alert.is_dismissed:
        alert.is_dismissed = True
        alert.dismissed_at = datetime.utcnow()
        db.commit()
        db.refresh(alert)
        health.invalidate(alert.water_body_id)
    return alert
