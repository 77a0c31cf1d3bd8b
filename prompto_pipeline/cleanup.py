"""
Prompto — Firestore Cleanup
=============================
Deletes every document in categories, prompts and promptDetails.
Run before `prompto-migrate fresh` for a clean re-import.

WARNING: permanent. The script waits a few seconds before starting.
"""
import logging
import sys
import time

from .config import Config, banner, setup_logging

log = logging.getLogger("prompto.cleanup")

GRACE_SECONDS = 3
PAGE_PAUSE_SECONDS = 0.1


def delete_collection(db, collection: str, page_size: int = Config.BATCH_SIZE,
                      pause: float = PAGE_PAUSE_SECONDS) -> int:
    log.info(f"Deleting all documents in '{collection}'...")
    deleted = 0
    while True:
        snaps = list(db.collection(collection).limit(page_size).stream())
        if not snaps:
            break

        batch = db.batch()
        for snap in snaps:
            batch.delete(snap.reference)
        batch.commit()

        deleted += len(snaps)
        log.info(f"   Deleted {len(snaps)} documents (total: {deleted})")
        if pause:
            time.sleep(pause)

    log.info(f"Deleted {deleted} documents from '{collection}'")
    return deleted


def cleanup(db, collections=None, pause: float = PAGE_PAUSE_SECONDS) -> dict[str, int]:
    return {name: delete_collection(db, name, pause=pause)
            for name in collections or Config.collections()}


def main(argv=None) -> int:
    from .clients import firestore_client, load_credentials

    setup_logging()
    print(banner("FIRESTORE CLEANUP — DELETE ALL DATA"))
    print(f"  Collections: {', '.join(Config.collections())}")
    print(f"\n  Starting in {GRACE_SECONDS} seconds... (Ctrl+C to abort)")
    time.sleep(GRACE_SECONDS)

    try:
        results = cleanup(firestore_client(load_credentials()))
    except Exception:
        log.exception("Cleanup failed")
        return 1

    print(banner("CLEANUP COMPLETE"))
    for name, count in results.items():
        print(f"  {name:<15}: {count} deleted")
    print(f"  {'TOTAL':<15}: {sum(results.values())} deleted")
    print("\n  Next step: prompto-migrate fresh\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
