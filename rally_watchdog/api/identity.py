from fastapi import APIRouter

from rally_watchdog.services.identity_service import issue_fingerprint

router = APIRouter(prefix="/identity", tags=["Identity"])


@router.post("/fingerprint")
async def create_fingerprint():
    """
    Issue a client fingerprint for anonymous reporting. The client stores it
    locally and sends it as X-Client-Fingerprint on every submission.
    """
    return {"success": True, "fingerprint": issue_fingerprint()}
