# 🗄️ Store dependency for FastAPI routes

import logging

from rally_watchdog.core.errors import StoreError
from rally_watchdog.services.mongodb_service import get_store_instance, init_store
from rally_watchdog.services.store import Store

logger = logging.getLogger(__name__)


async def get_store() -> Store:
    """
    FastAPI dependency returning the connected store. Retries the connection
    once when startup could not reach MongoDB.
    """
    store = get_store_instance()
    if store is None:
        logger.warning("⚠️ Store not initialized; attempting reconnect...")
        store = await init_store()
    if store is None:
        raise StoreError("Database unavailable")
    return store
