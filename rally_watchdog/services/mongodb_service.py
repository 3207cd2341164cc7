#!/usr/bin/env python3
"""
MongoDB Store for the Rally Watchdog backend

Implements the Store interface on top of motor:

- Single-row inserts/updates with generated ids and timestamps
- Compare-and-set updates through extra filter conditions
- Atomic report-number counters via $inc
- Index management for the rate-limit and lookup queries
- Driver errors wrapped into StoreError
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, IndexModel, ReturnDocument
from pymongo.errors import PyMongoError

from rally_watchdog.core.config import Settings, get_settings
from rally_watchdog.core.errors import StoreError
from rally_watchdog.services.store import DRIVERS, REPORTS, WARNINGS, SortSpec, Store
from rally_watchdog.utils.helpers import new_id, utcnow

logger = logging.getLogger(__name__)

COUNTERS = "counters"

INDEX_DEFINITIONS = {
    REPORTS: [
        # Sliding-window counts: submitter + created_at range
        IndexModel([("submitter_key", ASCENDING), ("created_at", DESCENDING)]),
        IndexModel([("report_number", ASCENDING)], unique=True),
        IndexModel([("status", ASCENDING)]),
        IndexModel([("created_at", DESCENDING)]),
    ],
    DRIVERS: [
        IndexModel([("vehicle_number", ASCENDING), ("updated_at", DESCENDING)]),
    ],
    WARNINGS: [
        IndexModel([("report_id", ASCENDING), ("sent_at", DESCENDING)]),
    ],
}


def _to_row(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Mongo document -> store row (``_id`` becomes ``id``)."""
    if document is None:
        return None
    row = dict(document)
    row["id"] = str(row.pop("_id"))
    return row


def _to_filter(filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    query = dict(filters or {})
    if "id" in query:
        query["_id"] = query.pop("id")
    return query


class MongoStore(Store):
    """Store backed by a motor database handle."""

    def __init__(self, database, client: Optional[AsyncIOMotorClient] = None):
        self.db = database
        self.client = client

    @asynccontextmanager
    async def _store_operation(self, operation: str, table: str):
        start_time = time.time()
        try:
            yield
        except PyMongoError as e:
            elapsed = (time.time() - start_time) * 1000
            logger.error(f"❌ MongoDB {operation} on '{table}' failed after {elapsed:.2f}ms: {e}")
            raise StoreError(f"Database {operation} failed: {e}") from e
        else:
            elapsed = (time.time() - start_time) * 1000
            if elapsed > 1000:
                logger.warning(f"⚠️ Slow {operation} on '{table}': {elapsed:.2f}ms")
            logger.debug(f"MongoDB {operation.upper()} on '{table}' took {elapsed:.2f} ms")

    async def ensure_indexes(self):
        """Create the indexes the intake and review queries rely on."""
        for table, indexes in INDEX_DEFINITIONS.items():
            async with self._store_operation("create_indexes", table):
                await self.db[table].create_indexes(indexes)
            logger.info(f"📊 Verified {len(indexes)} indexes for {table} collection")

    async def insert(self, table: str, document: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(document)
        doc["_id"] = doc.pop("id", None) or new_id()
        now = utcnow()
        doc.setdefault("created_at", now)
        doc.setdefault("updated_at", doc["created_at"])

        async with self._store_operation("insert", table):
            await self.db[table].insert_one(doc)
        return _to_row(doc)

    async def get(self, table: str, entity_id: str) -> Optional[Dict[str, Any]]:
        async with self._store_operation("read", table):
            document = await self.db[table].find_one({"_id": entity_id})
        return _to_row(document)

    async def update(
        self,
        table: str,
        entity_id: str,
        fields: Dict[str, Any],
        conditions: Optional[Dict[str, Any]] = None,
    ) -> bool:
        update_fields = dict(fields)
        update_fields.setdefault("updated_at", utcnow())
        query = _to_filter(conditions)
        query["_id"] = entity_id

        async with self._store_operation("update", table):
            result = await self.db[table].update_one(query, {"$set": update_fields})
        return result.matched_count > 0

    async def query(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        async with self._store_operation("read", table):
            cursor = self.db[table].find(
                _to_filter(filters),
                sort=list(order) if order else None,
                limit=limit or 0,
            )
            documents = await cursor.to_list(length=limit)
        return [_to_row(d) for d in documents]

    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        async with self._store_operation("count", table):
            return await self.db[table].count_documents(_to_filter(filters))

    async def delete(self, table: str, entity_id: str) -> bool:
        async with self._store_operation("delete", table):
            result = await self.db[table].delete_one({"_id": entity_id})
        return result.deleted_count > 0

    async def next_sequence(self, name: str) -> int:
        async with self._store_operation("increment", COUNTERS):
            counter = await self.db[COUNTERS].find_one_and_update(
                {"_id": name},
                {"$inc": {"value": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        return int(counter["value"])

    def close(self):
        if self.client is not None:
            self.client.close()


# --------------------------------------------------------------------
# Process-wide store lifecycle (startup / shutdown)
# --------------------------------------------------------------------
_mongo_store: Optional[MongoStore] = None
_connect_lock = asyncio.Lock()


async def init_store(settings: Optional[Settings] = None) -> Optional[MongoStore]:
    """
    Connect to MongoDB and verify indexes. Returns None when the database
    is unreachable so the app can still start and answer health checks.
    """
    global _mongo_store
    settings = settings or get_settings()

    async with _connect_lock:
        if _mongo_store is not None:
            return _mongo_store

        client = AsyncIOMotorClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=30000,
            connectTimeoutMS=30000,
            socketTimeoutMS=30000,
            maxPoolSize=20,
            minPoolSize=0,
            retryWrites=True,
        )
        try:
            await client.admin.command("ping")
            store = MongoStore(client[settings.mongo_db_name], client=client)
            await store.ensure_indexes()
        except (PyMongoError, StoreError) as e:
            logger.error(f"❌ Failed to connect to MongoDB: {e}")
            client.close()
            return None

        _mongo_store = store
        logger.info(f"✅ MongoDB store ready (database: {settings.mongo_db_name})")
        return _mongo_store


def get_store_instance() -> Optional[MongoStore]:
    return _mongo_store


async def close_store():
    global _mongo_store
    if _mongo_store is not None:
        _mongo_store.close()
        _mongo_store = None
        logger.info("🔒 MongoDB connection closed")
