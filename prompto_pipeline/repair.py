"""
Prompto — Data structure repair
=================================
1. promptDetails documents written by older migrations nest the real
   record under a `data` array and sit under the wrong key. Each one is
   rewritten as a flat document keyed by the prompt `_id`, and the old
   document is deleted afterwards.
2. Reports prompts that still have no `categoryId`.
"""
import logging
import sys
from dataclasses import dataclass, field

from google.cloud import firestore

from .config import Config, banner, setup_logging

log = logging.getLogger("prompto.repair")


def nested_detail(data: dict):
    """The wrapped record of a mis-structured detail document, or None."""
    inner = data.get("data")
    if isinstance(inner, list) and inner and isinstance(inner[0], dict):
        return inner[0]
    return None


@dataclass
class DetailRepair:
    fixed:   int = 0
    skipped: int = 0
    moved:   dict[str, str] = field(default_factory=dict)   # old key → new key


@dataclass
class CategoryAudit:
    with_category:    int = 0
    missing_category: list[str] = field(default_factory=list)


def _chunks(items: list, size: int):
    for i in range(0, len(items), size):
        yield items[i : i + size]


def fix_prompt_details(db, collection: str = Config.PROMPT_DETAILS,
                       batch_size: int = Config.BATCH_SIZE) -> DetailRepair:
    result = DetailRepair()
    col_ref = db.collection(collection)
    rewrites = []

    for snap in col_ref.stream():
        inner = nested_detail(snap.to_dict() or {})
        prompt_id = (inner.get("_id") or inner.get("id")) if inner else None
        if not prompt_id:
            result.skipped += 1
            continue

        log.info(f"Fixing document {snap.id} → {prompt_id}")
        clean = {k: v for k, v in inner.items() if k not in ("_id", "id")}
        clean["createdAt"] = firestore.SERVER_TIMESTAMP
        clean["updatedAt"] = firestore.SERVER_TIMESTAMP
        rewrites.append((snap.id, str(prompt_id), clean))

    # write every new document before deleting any old one
    for chunk in _chunks(rewrites, batch_size):
        batch = db.batch()
        for _, new_id, data in chunk:
            batch.set(col_ref.document(new_id), data)
        batch.commit()

    new_ids = {new for _, new, _ in rewrites}
    stale = [old for old, _, _ in rewrites if old not in new_ids]
    for chunk in _chunks(stale, batch_size):
        batch = db.batch()
        for old_id in chunk:
            batch.delete(col_ref.document(old_id))
        batch.commit()

    result.fixed = len(rewrites)
    result.moved = {old: new for old, new, _ in rewrites}
    log.info(f"PromptDetails fixed: {result.fixed}, already correct: {result.skipped}")
    return result


def audit_prompt_categories(db, collection: str = Config.PROMPTS) -> CategoryAudit:
    audit = CategoryAudit()
    for snap in db.collection(collection).stream():
        if (snap.to_dict() or {}).get("categoryId"):
            audit.with_category += 1
        else:
            audit.missing_category.append(snap.id)
    log.info(
        f"Prompts with categoryId: {audit.with_category}, "
        f"missing: {len(audit.missing_category)}"
    )
    return audit


def main(argv=None) -> int:
    from .clients import firestore_client, load_credentials

    setup_logging()
    print(banner("DATA STRUCTURE REPAIR"))
    try:
        db = firestore_client(load_credentials())
        details = fix_prompt_details(db)
        audit = audit_prompt_categories(db)
    except Exception:
        log.exception("Repair failed")
        return 1

    print(banner("REPAIR COMPLETE"))
    print(f"  PromptDetails fixed        : {details.fixed}")
    print(f"  PromptDetails already fine : {details.skipped}")
    print(f"  Prompts with categoryId    : {audit.with_category}")
    print(f"  Prompts missing categoryId : {len(audit.missing_category)}")
    for i, prompt_id in enumerate(audit.missing_category, 1):
        print(f"    {i}. {prompt_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
