"""
Prompto — Storage Reader
=========================
Downloads JSON blobs from the data folder in Cloud Storage and pulls
the record array out of whichever container shape the file uses:

    [ {...}, {...} ]                      → DIRECT_ARRAY
    { "data": [ ... ] }                   → KNOWN_KEY  (priority list below)
    { "meta": {...}, "anything": [ ... ] } → FIRST_ARRAY_PROPERTY

Anything else is rejected with MalformedInput listing the keys found.
"""
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .config import Config
from .errors import MalformedInput, NotFound

log = logging.getLogger("prompto.storage")

CONTAINER_KEYS = [
    "data", "items", "results", "categories",
    "prompts", "promptDetails", "list", "records",
]


class ContainerShape(str, Enum):
    DIRECT_ARRAY         = "direct_array"
    KNOWN_KEY            = "known_key"
    FIRST_ARRAY_PROPERTY = "first_array_property"


@dataclass
class ExtractedRecords:
    shape:   ContainerShape
    key:     Optional[str]      # None for DIRECT_ARRAY
    records: list

    def __len__(self) -> int:
        return len(self.records)


def extract_records(data: Any, file_name: str) -> ExtractedRecords:
    if isinstance(data, list):
        log.info(f"   Direct array structure ({len(data)} items)")
        return ExtractedRecords(ContainerShape.DIRECT_ARRAY, None, data)

    if not isinstance(data, dict):
        raise MalformedInput(f"Invalid JSON structure in file: {file_name}")

    for key in CONTAINER_KEYS:
        if isinstance(data.get(key), list):
            log.info(f"   Found array in '{key}' property ({len(data[key])} items)")
            return ExtractedRecords(ContainerShape.KNOWN_KEY, key, data[key])

    for key, value in data.items():
        if isinstance(value, list):
            log.info(f"   Found array in '{key}' property ({len(value)} items)")
            return ExtractedRecords(ContainerShape.FIRST_ARRAY_PROPERTY, key, value)

    available = ", ".join(data.keys()) or "(none)"
    raise MalformedInput(
        f"No array found in JSON file: {file_name} (available properties: {available})"
    )


class StorageReader:
    """Reads source JSON from `<bucket>/<data_folder>`."""

    def __init__(self, bucket, data_folder: Optional[str] = None):
        self._bucket = bucket
        self.data_folder = data_folder if data_folder is not None else Config.DATA_FOLDER

    def list_json_files(self) -> list[str]:
        names = [
            blob.name[len(self.data_folder):]
            for blob in self._bucket.list_blobs(prefix=self.data_folder)
            if blob.name.endswith(".json")
        ]
        log.info(f"Found {len(names)} JSON files under {self.data_folder}")
        return names

    def fetch_json(self, file_name: str) -> Any:
        log.info(f"Downloading {file_name}...")
        blob = self._bucket.blob(f"{self.data_folder}{file_name}")
        if not blob.exists():
            raise NotFound(f"FILE_NOT_FOUND: {file_name}")

        raw = blob.download_as_bytes()
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedInput(f"Invalid JSON in file {file_name}: {e}") from e

    def read_records(self, file_name: str) -> ExtractedRecords:
        return extract_records(self.fetch_json(file_name), file_name)
