"""
Prompto — Read API backends
=============================
Two interchangeable data sources behind the HTTP handlers:

  FirestoreBackend  queries the migrated collections
  StorageBackend    re-reads the source JSON files per request; only the
                    category list is cached (CachedValue, 5 minute TTL)

Both return plain dicts carrying the document key as `_id`.
"""
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Optional

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .cache import CachedValue
from .category_linker import CategoryFileMap, CategoryIndex
from .config import Config
from .errors import NotFound
from .migration import classify_files
from .storage_reader import StorageReader

log = logging.getLogger("prompto.backends")


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _to_int(value: Any) -> int:
    """Leading integer of `value` ("25abc" → 25); 0 when there is none."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


def clamp_page_params(page: Any = None, limit: Any = None) -> tuple[int, int]:
    """page ≥ 1, limit in [1, MAX_PAGE_SIZE]; missing, zero or junk → defaults."""
    page = max(1, _to_int(page) or 1)
    limit = min(Config.MAX_PAGE_SIZE, max(1, _to_int(limit) or Config.DEFAULT_PAGE_SIZE))
    return page, limit


@dataclass
class Page:
    page:  int
    limit: int
    total: int
    data:  list[dict]

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)

    def to_dict(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            "data": self.data,
        }


def _with_id(doc_id: str, data: Optional[dict]) -> dict:
    return {"_id": doc_id, **(data or {})}


class FirestoreBackend:
    def __init__(self, db):
        self._db = db

    def list_categories(self) -> list[dict]:
        return [_with_id(s.id, s.to_dict()) for s in self._db.collection(Config.CATEGORIES).stream()]

    def list_prompts(self, category_id: str, page: int, limit: int) -> Page:
        query = (
            self._db.collection(Config.PROMPTS)
            .where(filter=FieldFilter("categoryId", "==", category_id))
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
        )
        total = int(query.count().get()[0][0].value)
        snaps = query.offset((page - 1) * limit).limit(limit).stream()
        return Page(page, limit, total, [_with_id(s.id, s.to_dict()) for s in snaps])

    def get_prompt_detail(self, prompt_id: str) -> dict:
        snap = self._db.collection(Config.PROMPT_DETAILS).document(prompt_id).get()
        if not snap.exists:
            raise NotFound("Prompt not found")
        return _with_id(snap.id, snap.to_dict())


def _record_id(item: dict) -> Optional[str]:
    doc_id = item.get("_id") or item.get("id")
    return str(doc_id) if doc_id else None


def _as_document(item: dict) -> dict:
    doc_id = _record_id(item)
    return _with_id(doc_id, {k: v for k, v in item.items() if k not in ("_id", "id")})


def _created_at_key(item: dict):
    # numbers sort numerically, everything else by its string form
    value = item.get("createdAt")
    numeric = isinstance(value, (int, float))
    return (value is not None, numeric, value if numeric else str(value or ""))


class StorageBackend:
    def __init__(self, reader: StorageReader, category_cache: CachedValue):
        self._reader = reader
        self._cache = category_cache

    def _load_categories(self) -> list[dict]:
        groups = classify_files(self._reader.list_json_files())
        categories = []
        for file_name in groups.categories:
            for item in self._reader.read_records(file_name).records:
                if isinstance(item, dict) and _record_id(item):
                    categories.append(_as_document(item))
        return categories

    def list_categories(self) -> list[dict]:
        return self._cache.get(self._load_categories)

    def list_prompts(self, category_id: str, page: int, limit: int) -> Page:
        index = CategoryIndex.from_records(self.list_categories())
        name = index.name_for(category_id)
        prompts: list[dict] = []
        if name is not None:
            groups = classify_files(self._reader.list_json_files())
            file_name = CategoryFileMap.load(groups.prompts).file_for(name)
            if file_name:
                prompts = [
                    _as_document(item)
                    for item in self._reader.read_records(file_name).records
                    if isinstance(item, dict) and _record_id(item)
                ]
            else:
                log.warning(f"No prompt file for category {name}")

        prompts.sort(key=_created_at_key, reverse=True)
        start = (page - 1) * limit
        return Page(page, limit, len(prompts), prompts[start : start + limit])

    def get_prompt_detail(self, prompt_id: str) -> dict:
        groups = classify_files(self._reader.list_json_files())
        for file_name in groups.prompt_details:
            for item in self._reader.read_records(file_name).records:
                if isinstance(item, dict) and _record_id(item) == prompt_id:
                    return _as_document(item)
        raise NotFound("Prompt not found")
