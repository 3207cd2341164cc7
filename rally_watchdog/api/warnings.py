"""
Warning dispatch route for operators
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from rally_watchdog.core.auth import SessionContext, require_operator
from rally_watchdog.core.config import Settings, get_settings
from rally_watchdog.core.database import get_store
from rally_watchdog.models.warning_model import DeliveryStatus, DispatchRequest
from rally_watchdog.services.dispatch_service import WarningDispatcher
from rally_watchdog.services.notifier_service import Notifier, get_notifier
from rally_watchdog.services.store import Store
from rally_watchdog.utils.helpers import get_clock

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/warnings", tags=["Warnings"])


def get_dispatcher(
    store: Store = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
    clock=Depends(get_clock),
) -> WarningDispatcher:
    return WarningDispatcher(
        store,
        notifier,
        clock=clock,
        # Outer bound a little above the transport timeout
        notifier_timeout=settings.notifier_timeout_seconds + 5,
    )


@router.post("/dispatch")
async def dispatch_warning(
    request: DispatchRequest,
    operator: SessionContext = Depends(require_operator),
    dispatcher: WarningDispatcher = Depends(get_dispatcher),
):
    """
    Send a warning SMS to the driver of a report.

    200 when delivered, 202 when the attempt was logged but not delivered
    (skipped or failed) so the operator can retry.
    """
    logger.info(f"📣 Operator {operator.user_id} dispatching warning for report {request.report_id}")
    result = await dispatcher.dispatch_warning(request.report_id, request.driver_id)
    status_code = 200 if result.delivery_status == DeliveryStatus.SENT else 202
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result))
