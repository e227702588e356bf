from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from slotbook.auth.dependencies import Caller, require_admin
from slotbook.core import config
from slotbook.routes.common import ensure_database_ready, get_db, to_http_exception
from slotbook.routes.schemas import DashboardResponse, SweepResponse
from slotbook.services.errors import BookingError
from slotbook.services.reconciliation import sweep_orphaned_slots
from slotbook.services.reporting import dashboard_summary

router = APIRouter(tags=['admin'])


@router.get('/dashboard', response_model=DashboardResponse)
def admin_dashboard(
    limit: int | None = Query(default=None, ge=1, le=50),
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return dashboard_summary(db, limit=limit)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/reconcile', response_model=SweepResponse)
def reconcile_slots(
    grace_seconds: int | None = Query(default=None, ge=config.MIN_ORPHAN_GRACE_SECONDS),
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return sweep_orphaned_slots(db, grace_seconds=grace_seconds)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
