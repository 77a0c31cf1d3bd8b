"""
Prompto — Verification & inspection
=====================================
Read-only diagnostics.

Usage:
    prompto-verify [collections|structure|files]

    collections  document counts + samples per collection, storage file
                 breakdown, and what to run next           (default)
    structure    prompts without categoryId, promptDetails with the old
                 nested `data` array layout
    files        root shape, keys and first record of every source file
"""
import json
import logging
import sys
from dataclasses import dataclass
from typing import Optional

from .config import Config, banner, setup_logging
from .migration import FileGroups, classify_files
from .repair import audit_prompt_categories, nested_detail
from .storage_reader import StorageReader

log = logging.getLogger("prompto.verify")

SAMPLE_SIZE = 3
PREVIEW_CHARS = 50


def count_documents(db, collection: str) -> int:
    result = db.collection(collection).count().get()
    return int(result[0][0].value)


def _preview(value) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)[:PREVIEW_CHARS] + "..."
    text = str(value)
    return text[:PREVIEW_CHARS] + "..." if len(text) > PREVIEW_CHARS else text


def sample_documents(db, collection: str, n: int = SAMPLE_SIZE) -> list[tuple[str, dict]]:
    samples = []
    for snap in db.collection(collection).limit(n).stream():
        data = snap.to_dict() or {}
        samples.append((snap.id, {k: _preview(v) for k, v in list(data.items())[:5]}))
    return samples


@dataclass
class VerificationReport:
    counts: dict[str, int]
    files:  Optional[FileGroups]

    def recommendations(self) -> list[str]:
        prompts = self.counts.get(Config.PROMPTS, 0)
        details = self.counts.get(Config.PROMPT_DETAILS, 0)
        categories = self.counts.get(Config.CATEGORIES, 0)
        has_prompt_files = bool(self.files and (self.files.prompts or self.files.prompt_details))

        if prompts == 0 and details == 0:
            if has_prompt_files:
                return ["Prompts and prompt details are missing from Firestore but exist in Storage.",
                        "Run: prompto-migrate update"]
            return ["No prompt data in Firestore or Storage.",
                    f"Upload prompt JSON files to the {Config.DATA_FOLDER} folder, then run: prompto-migrate"]
        if prompts > 0 and details == 0:
            return ["Prompts exist but prompt details are missing.",
                    "Run: prompto-migrate update"]
        if categories > 0 and prompts > 0 and details > 0:
            return ["All collections have data."]
        return []


def verify(db, reader: Optional[StorageReader]) -> VerificationReport:
    counts = {}
    for name in Config.collections():
        counts[name] = count_documents(db, name)
        print(banner(f"Collection: {name}  ({counts[name]} documents)", char="─"))
        if counts[name] == 0:
            print("  Collection is EMPTY")
        for i, (doc_id, fields) in enumerate(sample_documents(db, name), 1):
            print(f"  {i}. {doc_id}")
            for key, value in fields.items():
                print(f"     {key}: {value}")

    files = classify_files(reader.list_json_files()) if reader else None
    return VerificationReport(counts, files)


def check_structure(db) -> dict:
    audit = audit_prompt_categories(db)
    nested = []
    for snap in db.collection(Config.PROMPT_DETAILS).stream():
        inner = nested_detail(snap.to_dict() or {})
        if inner is not None:
            nested.append((snap.id, inner.get("_id")))
            log.warning(f"promptDetails/{snap.id} has nested 'data' array (real _id: {inner.get('_id')})")
    return {"missing_category": audit.missing_category, "nested_details": nested}


def inspect_file(reader: StorageReader, file_name: str) -> dict:
    data = reader.fetch_json(file_name)
    info = {"file": file_name, "root": type(data).__name__}
    if isinstance(data, list):
        info["length"] = len(data)
        info["first"] = data[0] if data else None
    elif isinstance(data, dict):
        info["keys"] = list(data.keys())
        info["arrays"] = {k: len(v) for k, v in data.items() if isinstance(v, list)}
        first_key = next(iter(info["arrays"]), None)
        info["first"] = data[first_key][0] if first_key and data[first_key] else None
    return info


def _print_report(report: VerificationReport) -> None:
    print(banner("SUMMARY"))
    for name, count in report.counts.items():
        print(f"  {name:<15}: {count} documents")
    if report.files:
        print(f"  Category files     : {', '.join(report.files.categories) or '-'}")
        print(f"  Prompt files       : {', '.join(report.files.prompts) or '-'}")
        print(f"  Prompt detail files: {', '.join(report.files.prompt_details) or '-'}")
        if report.files.unrecognized:
            print(f"  Other files        : {', '.join(report.files.unrecognized)}")
    print(banner("RECOMMENDATIONS", char="─"))
    for line in report.recommendations():
        print(f"  {line}")


def main(argv=None) -> int:
    from .clients import firestore_client, load_credentials, storage_bucket

    setup_logging()
    argv = sys.argv[1:] if argv is None else argv
    command = argv[0] if argv else "collections"

    try:
        credentials = load_credentials()
        if command == "collections":
            report = verify(firestore_client(credentials), StorageReader(storage_bucket(credentials)))
            _print_report(report)
        elif command == "structure":
            found = check_structure(firestore_client(credentials))
            print(banner("STRUCTURE CHECK"))
            print(f"  Prompts missing categoryId : {len(found['missing_category'])}")
            print(f"  Nested promptDetails       : {len(found['nested_details'])}")
            if found["missing_category"] or found["nested_details"]:
                print("\n  Run: prompto-repair")
        elif command == "files":
            reader = StorageReader(storage_bucket(credentials))
            for file_name in reader.list_json_files():
                info = inspect_file(reader, file_name)
                print(banner(f"File: {file_name}", char="─"))
                first = info.pop("first", None)
                for key, value in info.items():
                    print(f"  {key}: {value}")
                if first is not None:
                    print(json.dumps(first, indent=2, default=str)[:500])
        else:
            log.error(f"Unknown command '{command}' (expected collections, structure or files)")
            return 1
    except Exception:
        log.exception("Verification failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
