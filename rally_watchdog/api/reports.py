"""
Incident report routes: participant intake and operator review.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from rally_watchdog.core.auth import SessionContext, get_session_context, require_operator
from rally_watchdog.core.config import Settings, get_settings
from rally_watchdog.core.database import get_store
from rally_watchdog.models.report_model import (
    AssignDriverRequest,
    ReportCreate,
    ReportStatus,
    StatusUpdateRequest,
)
from rally_watchdog.services.identity_service import resolve_session_identity
from rally_watchdog.services.intake_service import IntakeGate
from rally_watchdog.services.rate_limiter_service import ReportRateLimiter
from rally_watchdog.services.report_service import ReportReviewService
from rally_watchdog.services.status_service import set_report_status
from rally_watchdog.services.store import Store
from rally_watchdog.utils.helpers import get_clock

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reports", tags=["Reports"])


def get_intake_gate(
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
    clock=Depends(get_clock),
) -> IntakeGate:
    return IntakeGate(store, clock=clock, report_number_prefix=settings.report_number_prefix)


def get_review_service(store: Store = Depends(get_store), clock=Depends(get_clock)) -> ReportReviewService:
    return ReportReviewService(store, clock=clock)


# ============================================================================
# PARTICIPANT ENDPOINTS
# ============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_report(
    payload: ReportCreate,
    context: SessionContext = Depends(get_session_context),
    gate: IntakeGate = Depends(get_intake_gate),
):
    """
    Submit an incident report.

    Identity comes from the bearer token when present, otherwise from the
    X-Client-Fingerprint header. Rate limited per identity.
    """
    report = await gate.submit_session_report(payload, context)
    return {
        "success": True,
        "message": "Your incident report has been received and will be reviewed.",
        "report": report,
    }


@router.get("/rate-limit")
async def get_rate_limit_status(
    context: SessionContext = Depends(get_session_context),
    store: Store = Depends(get_store),
    clock=Depends(get_clock),
):
    """Remaining submissions for the caller in each window."""
    identity = resolve_session_identity(context)
    limiter = ReportRateLimiter(store, clock=clock)
    return await limiter.get_status(identity)


# ============================================================================
# OPERATOR ENDPOINTS
# ============================================================================

@router.get("")
async def list_reports(
    status_filter: Optional[ReportStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Vehicle, report number, type or description"),
    limit: int = Query(100, ge=1, le=500),
    operator: SessionContext = Depends(require_operator),
    service: ReportReviewService = Depends(get_review_service),
):
    reports = await service.list_reports(status=status_filter, search=search, limit=limit)
    return {"success": True, "count": len(reports), "reports": reports}


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    operator: SessionContext = Depends(require_operator),
    service: ReportReviewService = Depends(get_review_service),
):
    return {"success": True, "report": await service.get_report(report_id)}


@router.patch("/{report_id}/status")
async def update_report_status(
    report_id: str,
    request: StatusUpdateRequest,
    operator: SessionContext = Depends(require_operator),
    store: Store = Depends(get_store),
    clock=Depends(get_clock),
):
    report, changed = await set_report_status(store, report_id, request.status, clock=clock)
    logger.info(f"Operator {operator.user_id} set report {report_id} to {request.status.value} (changed={changed})")
    return {
        "success": True,
        "changed": changed,
        "message": f"Report status changed to {report.status.value}" if changed else f"Report already {report.status.value}",
        "report": report,
    }


@router.put("/{report_id}/driver")
async def assign_report_driver(
    report_id: str,
    request: AssignDriverRequest,
    operator: SessionContext = Depends(require_operator),
    service: ReportReviewService = Depends(get_review_service),
):
    report = await service.assign_driver(report_id, request.driver_id)
    return {"success": True, "report": report}


@router.get("/{report_id}/warnings")
async def list_report_warnings(
    report_id: str,
    operator: SessionContext = Depends(require_operator),
    service: ReportReviewService = Depends(get_review_service),
):
    warnings = await service.list_warnings(report_id)
    return {"success": True, "count": len(warnings), "warnings": warnings}
