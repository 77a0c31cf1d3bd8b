"""
Prompto — Storage → Firestore Migration
=========================================
Discovers the JSON files under the data folder, then migrates, in order:

    1. categories      (*category*.json)
    2. prompts         (prompts_<Name>.json, linked to category <Name>)
    3. promptDetails   (promptDetails_<Name>.json, keyed by the prompt _id)

Usage:
    prompto-migrate [fresh|update|force|auto]      (default: auto)

    auto    update when any collection already has data, fresh otherwise
"""
import logging
import sys
from dataclasses import dataclass, field
from typing import Optional

from google.cloud import firestore

from .batch_writer import BatchWriter, MigrationMode, WriteRecord, WriteResult, resolve_mode
from .category_linker import CategoryFileMap, CategoryIndex, CategoryLinker
from .config import Config, banner, setup_logging
from .storage_reader import StorageReader

log = logging.getLogger("prompto.migration")


@dataclass
class FileGroups:
    categories:     list[str] = field(default_factory=list)
    prompts:        list[str] = field(default_factory=list)
    prompt_details: list[str] = field(default_factory=list)
    unrecognized:   list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.categories or self.prompts or self.prompt_details)


def classify_files(file_names: list[str]) -> FileGroups:
    groups = FileGroups()
    for name in file_names:
        lower = name.lower()
        if "category" in lower:
            groups.categories.append(name)
        elif lower.startswith("prompts_"):
            groups.prompts.append(name)
        elif lower.startswith("promptdetails_"):
            groups.prompt_details.append(name)
        else:
            log.warning(f"Skipping unrecognized file: {name}")
            groups.unrecognized.append(name)

    log.info(
        f"File categorization: categories={len(groups.categories)}  "
        f"prompts={len(groups.prompts)}  promptDetails={len(groups.prompt_details)}"
    )
    return groups


def to_write_record(item: dict, extra: Optional[dict] = None) -> Optional[WriteRecord]:
    """`_id`/`id` becomes the document key and is dropped from the stored data."""
    if not isinstance(item, dict):
        return None
    doc_id = item.get("_id") or item.get("id")
    if not doc_id:
        return None

    data = {k: v for k, v in item.items() if k not in ("_id", "id")}
    if extra:
        data.update(extra)
    data["createdAt"] = firestore.SERVER_TIMESTAMP
    data["updatedAt"] = firestore.SERVER_TIMESTAMP
    return WriteRecord(str(doc_id), data)


def _collect(reader: StorageReader, file_name: str, kind: str, extra: Optional[dict] = None):
    records, raw = [], []
    for item in reader.read_records(file_name).records:
        record = to_write_record(item, extra)
        if record is None:
            log.warning(f"{kind} without _id in {file_name}, skipping")
            continue
        records.append(record)
        raw.append(item)
    return records, raw


@dataclass
class MigrationSummary:
    mode:           MigrationMode
    categories:     WriteResult = field(default_factory=WriteResult)
    prompts:        WriteResult = field(default_factory=WriteResult)
    prompt_details: WriteResult = field(default_factory=WriteResult)
    unlinked_files: list[str] = field(default_factory=list)

    @property
    def total(self) -> WriteResult:
        return self.categories + self.prompts + self.prompt_details

    def __str__(self) -> str:
        rows = [
            ("Categories", self.categories),
            ("Prompts", self.prompts),
            ("Prompt Details", self.prompt_details),
        ]
        lines = [banner("MIGRATION COMPLETE"), f"  Mode     : {self.mode.value.upper()}"]
        for label, r in rows:
            lines.append(
                f"  {label:<15}: {r.succeeded} added, {r.skipped} skipped, {r.failed} errors"
            )
        t = self.total
        lines.append("─" * 62)
        lines.append(f"  TOTALS         : {t.succeeded} added, {t.skipped} skipped, {t.failed} errors")
        if self.unlinked_files:
            lines.append(f"  Unlinked files : {', '.join(self.unlinked_files)}")
        lines.append("═" * 62)
        return "\n".join(lines)


class Migration:
    def __init__(self, db, reader: StorageReader, writer: Optional[BatchWriter] = None,
                 category_file_map: Optional[str] = None):
        self._db = db
        self._reader = reader
        self._writer = writer or BatchWriter(db)
        self._category_file_map = category_file_map

    def migrate_categories(self, files: list[str], mode: MigrationMode):
        records, raw = [], []
        for file_name in files:
            r, items = _collect(self._reader, file_name, "Category")
            records += r
            raw += items
        return self._writer.write(Config.CATEGORIES, records, mode), raw

    def build_index(self, category_items: list[dict]) -> CategoryIndex:
        index = CategoryIndex.from_firestore(self._db)
        if len(index) == 0 and category_items:
            log.warning("No categories readable from Firestore — linking from source files")
            index = CategoryIndex.from_records(category_items)
        return index

    def migrate_prompts(self, files: list[str], linker: CategoryLinker,
                        mode: MigrationMode, unlinked: list[str]) -> WriteResult:
        records = []
        for file_name in files:
            link = linker.link(file_name)
            extra = {"categoryId": link.category_id} if link.linked else None
            if not link.linked:
                unlinked.append(file_name)
            records += _collect(self._reader, file_name, "Prompt", extra)[0]
        return self._writer.write(Config.PROMPTS, records, mode)

    def migrate_prompt_details(self, files: list[str], mode: MigrationMode) -> WriteResult:
        # the detail key must equal the owning prompt's _id
        records = []
        for file_name in files:
            records += _collect(self._reader, file_name, "Prompt detail")[0]
        return self._writer.write(Config.PROMPT_DETAILS, records, mode)

    def run(self, requested_mode: str = "auto") -> Optional[MigrationSummary]:
        mode = resolve_mode(self._db, requested_mode)
        log.info(f"Migration mode: {mode.value.upper()}")

        groups = classify_files(self._reader.list_json_files())
        if groups.empty:
            log.warning(f"No JSON files found. Upload files to the {self._reader.data_folder} folder.")
            return None

        summary = MigrationSummary(mode)

        print(banner("MIGRATING CATEGORIES"))
        summary.categories, category_items = self.migrate_categories(groups.categories, mode)

        print(banner("MIGRATING PROMPTS"))
        linker = CategoryLinker(
            self.build_index(category_items),
            CategoryFileMap.load(groups.prompts, self._category_file_map),
        )
        summary.prompts = self.migrate_prompts(groups.prompts, linker, mode, summary.unlinked_files)

        print(banner("MIGRATING PROMPT DETAILS"))
        summary.prompt_details = self.migrate_prompt_details(groups.prompt_details, mode)
        return summary


def print_index_instructions() -> None:
    print(banner("FIRESTORE INDEXES NEEDED"))
    print(f"  Collection: {Config.PROMPTS}")
    print("    Fields: categoryId (Ascending), createdAt (Descending)")
    print("\n  Create it in the Firebase Console → Firestore Database → Indexes,")
    print("  or: firebase deploy --only firestore:indexes")


def main(argv=None) -> int:
    from .clients import firestore_client, load_credentials, storage_bucket

    setup_logging()
    argv = sys.argv[1:] if argv is None else argv
    requested = argv[0] if argv else "auto"

    print(banner("PROMPTO — FIRESTORE MIGRATION"))
    try:
        credentials = load_credentials()
        migration = Migration(
            firestore_client(credentials),
            StorageReader(storage_bucket(credentials)),
        )
        summary = migration.run(requested)
    except Exception:
        log.exception("Migration failed")
        return 1

    if summary is not None:
        print(summary)
        print_index_instructions()
    return 0


if __name__ == "__main__":
    sys.exit(main())
