"""
Prompto — Idempotent Batch Writer
===================================
Writes `WriteRecord(doc_id, data)` pairs to one collection in chunks of
at most Config.BATCH_SIZE, one batch commit per chunk.

Modes:
  fresh   full replace of every record
  update  skip records whose key already exists (one key-only scan)
  force   merge-write every record, keeping fields absent from the record
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from google.cloud.firestore_v1.field_path import FieldPath

from .config import Config
from .errors import MalformedInput, WriteFailure

log = logging.getLogger("prompto.writer")


class MigrationMode(str, Enum):
    FRESH  = "fresh"
    UPDATE = "update"
    FORCE  = "force"

    @classmethod
    def parse(cls, value: str) -> "MigrationMode":
        try:
            return cls(value.lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise MalformedInput(f"Unknown mode '{value}' (expected one of: {valid})")


@dataclass
class WriteRecord:
    doc_id: str
    data:   dict


@dataclass
class WriteResult:
    succeeded: int = 0
    skipped:   int = 0
    failed:    int = 0
    commits:   int = 0

    def __add__(self, other: "WriteResult") -> "WriteResult":
        return WriteResult(
            self.succeeded + other.succeeded,
            self.skipped + other.skipped,
            self.failed + other.failed,
            self.commits + other.commits,
        )


def existing_doc_ids(db, collection: str) -> set[str]:
    """Key-only scan of a whole collection."""
    try:
        query = db.collection(collection).select([FieldPath.document_id()])
        return {snap.id for snap in query.stream()}
    except Exception as e:
        raise WriteFailure(f"Could not read existing IDs in '{collection}': {e}") from e


def has_documents(db, collection: str) -> bool:
    return any(True for _ in db.collection(collection).limit(1).stream())


def resolve_mode(db, requested: str, collections: Optional[list[str]] = None) -> MigrationMode:
    """`auto` becomes UPDATE when any collection already has data, else FRESH."""
    if requested.lower() != "auto":
        return MigrationMode.parse(requested)

    for name in collections or Config.collections():
        if has_documents(db, name):
            log.info(f"Detected existing data in '{name}' — using 'update' mode")
            return MigrationMode.UPDATE

    log.info("No existing data found — using 'fresh' mode")
    return MigrationMode.FRESH


class BatchWriter:
    def __init__(self, db, batch_size: int = Config.BATCH_SIZE):
        if not 1 <= batch_size <= Config.BATCH_SIZE:
            raise ValueError(f"batch_size must be in [1, {Config.BATCH_SIZE}]")
        self._db = db
        self.batch_size = batch_size

    def write(
        self,
        collection: str,
        records: Iterable[WriteRecord],
        mode: MigrationMode,
    ) -> WriteResult:
        records = list(records)
        result = WriteResult()
        if not records:
            log.warning(f"No data to write to {collection}")
            return result

        log.info(f"Processing {len(records)} documents for {collection} (mode: {mode.value})")

        existing: set[str] = set()
        if mode == MigrationMode.UPDATE:
            existing = existing_doc_ids(self._db, collection)
            log.info(f"   Found {len(existing)} existing documents")

        col_ref = self._db.collection(collection)

        for start in range(0, len(records), self.batch_size):
            chunk = records[start : start + self.batch_size]
            batch_num = start // self.batch_size + 1
            batch = self._db.batch()
            pending = 0

            for record in chunk:
                if mode == MigrationMode.UPDATE and record.doc_id in existing:
                    result.skipped += 1
                    continue
                ref = col_ref.document(record.doc_id)
                if mode == MigrationMode.FORCE:
                    batch.set(ref, record.data, merge=True)
                else:
                    batch.set(ref, record.data)
                pending += 1

            if pending == 0:
                log.info(f"Batch {batch_num} skipped (all {len(chunk)} documents exist)")
                continue

            result.commits += 1
            try:
                batch.commit()
            except Exception as e:
                # whole chunk is lost; later chunks still run
                log.error(f"Batch {batch_num} commit failed: {e}")
                result.failed += pending
                continue

            result.succeeded += pending
            log.info(f"Batch {batch_num} committed ({pending} documents)")

        log.info(
            f"Collection {collection}: {result.succeeded} written, "
            f"{result.skipped} skipped, {result.failed} failed"
        )
        return result
