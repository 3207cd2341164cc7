"""Abstract persistence interface used by the intake and dispatch services."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

REPORTS = "reports"
DRIVERS = "drivers"
WARNINGS = "warnings"

ASCENDING = 1
DESCENDING = -1

# (field, direction) pairs, e.g. [("created_at", DESCENDING)]
SortSpec = Sequence[Tuple[str, int]]


class Store(ABC):
    """
    Row store with atomic single-row writes and filtered reads.

    Rows are plain dicts keyed by ``id``. Filters use MongoDB query syntax
    (``{"status": "pending", "created_at": {"$gte": since}}``). No operation
    spans more than one row, so callers must not assume multi-statement
    isolation.
    """

    @abstractmethod
    async def insert(self, table: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row, generating ``id``/``created_at``/``updated_at`` when absent."""

    @abstractmethod
    async def get(self, table: str, entity_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def update(
        self,
        table: str,
        entity_id: str,
        fields: Dict[str, Any],
        conditions: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Set ``fields`` on one row. ``conditions`` narrows the match, which
        gives a compare-and-set write. Returns True when a row matched.
        """

    @abstractmethod
    async def query(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int: ...

    @abstractmethod
    async def delete(self, table: str, entity_id: str) -> bool: ...

    @abstractmethod
    async def next_sequence(self, name: str) -> int:
        """Atomically increment and return a named counter (starts at 1)."""
