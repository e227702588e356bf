"""Release slot holds that no live appointment owns.

Usage:
    python -m slotbook.reconcile_slots [grace_seconds]
"""
import logging
import sys

from slotbook.core import config
from slotbook.database import SessionLocal
from slotbook.services.errors import InvalidRequest, UpstreamFailure
from slotbook.services.reconciliation import sweep_orphaned_slots


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=config.LOG_LEVEL)
    argv = sys.argv[1:] if argv is None else argv

    try:
        grace_seconds = int(argv[0]) if argv else None
    except ValueError:
        print(f"grace_seconds must be an integer, got {argv[0]!r}", file=sys.stderr)
        return 2

    db = SessionLocal()
    try:
        report = sweep_orphaned_slots(db, grace_seconds=grace_seconds)
    except InvalidRequest as exc:
        print(exc.message, file=sys.stderr)
        return 2
    except UpstreamFailure as exc:
        print(f"Sweep failed: {exc.message}", file=sys.stderr)
        return 1
    finally:
        db.close()

    for slot in report['released']:
        print(f"released {slot['provider_id']} {slot['slot_date']} {slot['slot_time']}")
    print(f"{len(report['released'])} holds released, {report['resolved_records']} records resolved")
    return 0


if __name__ == "__main__":
    sys.exit(main())
