"""
Prompto — Category Linker
===========================
Stamps prompt records with the `categoryId` of the category their source
file belongs to.

The file → category name mapping is an explicit `CategoryFileMap`. It is
either loaded from a JSON object ({"prompts_Music.json": "Music", ...})
or inferred from the `prompts_<Name>.json` naming convention. Names are
then resolved against a `CategoryIndex` built from Firestore: exact
match first, lowercase second.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .config import Config
from .errors import MalformedInput

log = logging.getLogger("prompto.linker")

NAME_FIELDS = ("name", "category_name", "categoryName", "title")

_FILE_PATTERN = re.compile(r"(?:prompts_|promptDetails_)(.+)\.json$", re.IGNORECASE)


def category_name_from_file(file_name: str) -> Optional[str]:
    """"prompts_Trending.json" → "Trending"."""
    match = _FILE_PATTERN.search(file_name)
    return match.group(1) if match else None


def category_name_of(data: dict) -> Optional[str]:
    for key in NAME_FIELDS:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


@dataclass
class CategoryIndex:
    exact: dict[str, str] = field(default_factory=dict)
    lower: dict[str, str] = field(default_factory=dict)

    def add(self, name: str, doc_id: str) -> None:
        self.exact[name] = doc_id
        self.lower[name.lower()] = doc_id

    def lookup(self, name: str) -> Optional[str]:
        return self.exact.get(name) or self.lower.get(name.lower())

    def name_for(self, doc_id: str) -> Optional[str]:
        for name, cid in self.exact.items():
            if cid == doc_id:
                return name
        return None

    def __len__(self) -> int:
        return len(self.exact)

    @classmethod
    def from_firestore(cls, db, collection: str = Config.CATEGORIES) -> "CategoryIndex":
        index = cls()
        for snap in db.collection(collection).stream():
            name = category_name_of(snap.to_dict() or {})
            if name:
                index.add(name, snap.id)
        log.info(f"Loaded {len(index)} categories from Firestore")
        for name, doc_id in index.exact.items():
            log.info(f"   {name} → {doc_id}")
        return index

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "CategoryIndex":
        index = cls()
        for item in records:
            name = category_name_of(item)
            doc_id = item.get("_id") or item.get("id")
            if name and doc_id:
                index.add(name, str(doc_id))
        return index


@dataclass
class CategoryFileMap:
    files: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        bad = [
            f"{file_name!r} → {name!r}"
            for file_name, name in self.files.items()
            if not (isinstance(file_name, str) and file_name.endswith(".json"))
            or not (isinstance(name, str) and name.strip())
        ]
        if bad:
            raise MalformedInput(f"Invalid category file mapping entries: {', '.join(bad)}")

    def category_for(self, file_name: str) -> Optional[str]:
        return self.files.get(file_name)

    def file_for(self, category_name: str) -> Optional[str]:
        for file_name, name in self.files.items():
            if name == category_name or name.lower() == category_name.lower():
                return file_name
        return None

    @classmethod
    def infer(cls, file_names: Iterable[str]) -> "CategoryFileMap":
        files = {}
        for file_name in file_names:
            name = category_name_from_file(file_name)
            if name:
                files[file_name] = name
            else:
                log.warning(f"Cannot infer a category from file name: {file_name}")
        return cls(files)

    @classmethod
    def from_file(cls, path) -> "CategoryFileMap":
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise MalformedInput(f"Category file map {path} is not valid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise MalformedInput(f"Category file map {path} must be a JSON object")
        return cls(raw)

    @classmethod
    def load(cls, file_names: Iterable[str], path: Optional[str] = None) -> "CategoryFileMap":
        """Explicit map when configured; inferred entries fill the gaps."""
        file_names = list(file_names)
        path = path or Config.CATEGORY_FILE_MAP
        inferred = cls.infer(file_names)
        if not path:
            return inferred
        explicit = cls.from_file(path)
        log.info(f"Using explicit category file map from {path} ({len(explicit.files)} entries)")
        return cls({**inferred.files, **explicit.files})


@dataclass
class CategoryLink:
    file_name:     str
    category_name: Optional[str]
    category_id:   Optional[str]

    @property
    def linked(self) -> bool:
        return self.category_id is not None


class CategoryLinker:
    def __init__(self, index: CategoryIndex, file_map: CategoryFileMap):
        self.index = index
        self.file_map = file_map

    def link(self, file_name: str) -> CategoryLink:
        name = self.file_map.category_for(file_name)
        if name is None:
            log.warning(f"No category mapping for {file_name}")
            return CategoryLink(file_name, None, None)

        category_id = self.index.lookup(name)
        if category_id:
            log.info(f"   Linked {file_name} to category: {name} ({category_id})")
        else:
            log.warning(f"   Could not find category ID for: {name}")
        return CategoryLink(file_name, name, category_id)
