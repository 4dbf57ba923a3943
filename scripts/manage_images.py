"""Article image maintenance.

Usage:
  python scripts/manage_images.py cleanup            # dry-run
  python scripts/manage_images.py cleanup --apply    # delete due images from storage
  python scripts/manage_images.py sync               # re-reconcile every article
  python scripts/manage_images.py stats
"""
import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from blog_cms.database import Base, SessionLocal, engine
import blog_cms.models  # noqa: F401
from blog_cms.services.image_store import ImageRecordStore
from blog_cms.services.image_tracking_service import ImageTracker
from blog_cms.services.storage import build_storage


def _print_cleanup(tracker: ImageTracker, apply: bool, batch_size: int | None, orphans: bool):
    if not apply:
        preview = tracker.preview_cleanup()
        print("Image cleanup preview (dry-run)")
        print(f"  due_count: {preview['due_count']}")
        print(f"  due_bytes: {preview['due_bytes']}")
        print(f"  orphaned_count: {preview['orphaned_count']}")
        print(f"  orphaned_bytes: {preview['orphaned_bytes']}")
        if preview["due_image_ids"]:
            print("  due_image_ids:")
            for image_id in preview["due_image_ids"]:
                print(f"    - {image_id}")
        return

    result = tracker.run_cleanup(batch_size=batch_size)
    print("Image cleanup result")
    print(f"  deleted_count: {result['deleted_count']}")
    print(f"  freed_bytes: {result['freed_bytes']}")
    for failure in result["failures"]:
        print(f"  failed: {failure['image_id']} ({failure['file_name']}): {failure['error']}")
    if orphans:
        orphaned = tracker.cleanup_orphaned_uploads(batch_size=batch_size)
        print(f"  orphaned_deleted: {orphaned['deleted']}")
        for failure in orphaned["failed"]:
            print(f"  orphan failed: {failure['image_id']}: {failure['error']}")


def main():
    parser = argparse.ArgumentParser()
    sub = parser.add_subparsers(dest="command", required=True)
    cleanup = sub.add_parser("cleanup", help="Delete images whose grace period has passed")
    cleanup.add_argument("--apply", action="store_true", help="Actually delete files")
    cleanup.add_argument("--batch-size", type=int, default=None)
    cleanup.add_argument("--orphans", action="store_true", help="Also delete old never-adopted uploads")
    sub.add_parser("sync", help="Re-run usage reconciliation for every article")
    sub.add_parser("stats", help="Print image statistics")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        tracker = ImageTracker(ImageRecordStore(db), build_storage())
        if args.command == "cleanup":
            _print_cleanup(tracker, args.apply, args.batch_size, args.orphans)
        elif args.command == "sync":
            result = tracker.sync()
            print("Image sync result")
            print(f"  scanned_articles: {result['scanned_articles']}")
            print(f"  synced_count: {result['synced_count']}")
            print(f"  changed_images: {result['changed_images']}")
            for failure in result["failed"]:
                print(f"  failed article {failure['article_id']}: {failure['error']}")
        else:
            for key, value in tracker.get_stats().items():
                print(f"  {key}: {value}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
