import asyncio
import copy
import uuid
from typing import Dict, Any, List, Optional, Tuple

# This file holds the in-memory tables, the object storage buckets and the
# concurrency locks. Rows are plain dicts keyed by their "id".

TABLE_NAMES = (
    "products",
    "cart_items",
    "saved_items",
    "orders",
    "order_items",
    "admins",
    "profiles",
    "users",
)

TABLES: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in TABLE_NAMES}
STORAGE: Dict[str, Dict[str, Tuple[str, bytes]]] = {}
_LOCKS: Dict[str, asyncio.Lock] = {}

def _get_lock(key: str) -> asyncio.Lock:
    if key not in _LOCKS:
        _LOCKS[key] = asyncio.Lock()
    return _LOCKS[key]

def new_id() -> str:
    return uuid.uuid4().hex

def _matches(row: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    return all(row.get(k) == v for k, v in filters.items())

def insert(table: str, row: Dict[str, Any]) -> Dict[str, Any]:
    stored = copy.deepcopy(row)
    stored.setdefault("id", new_id())
    TABLES[table][stored["id"]] = stored
    return copy.deepcopy(stored)

def insert_many(table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [insert(table, r) for r in rows]

def get(table: str, row_id: str) -> Optional[Dict[str, Any]]:
    row = TABLES[table].get(row_id)
    return copy.deepcopy(row) if row is not None else None

def select(table: str, order_by: Optional[str] = None, descending: bool = False, **filters) -> List[Dict[str, Any]]:
    rows = [copy.deepcopy(r) for r in TABLES[table].values() if _matches(r, filters)]
    if order_by:
        rows.sort(key=lambda r: r.get(order_by) or "", reverse=descending)
    return rows

def update(table: str, row_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    row = TABLES[table].get(row_id)
    if row is None:
        return None
    row.update(copy.deepcopy(changes))
    return copy.deepcopy(row)

def delete(table: str, **filters) -> int:
    doomed = [rid for rid, r in TABLES[table].items() if _matches(r, filters)]
    for rid in doomed:
        del TABLES[table][rid]
    return len(doomed)

# Object storage

def put_object(bucket: str, path: str, content: bytes, content_type: str) -> None:
    STORAGE.setdefault(bucket, {})[path] = (content_type, content)

def get_object(bucket: str, path: str) -> Optional[Tuple[str, bytes]]:
    return STORAGE.get(bucket, {}).get(path)

def reset() -> None:
    for rows in TABLES.values():
        rows.clear()
    STORAGE.clear()
    _LOCKS.clear()
