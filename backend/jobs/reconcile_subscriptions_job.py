from __future__ import annotations

import argparse
from pathlib import Path

from causas_ledger.core.logger import logger
from causas_ledger.db.database import SessionLocal
from causas_ledger.services.subscription_ledger import reconcile_active_subscribers


def _read_user_ids(user_ids: list[str], file_path: str | None) -> list[str]:
    ids = [u.strip() for u in user_ids if u and u.strip()]
    if file_path:
        for line in Path(file_path).read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                ids.append(line)
    return ids


def run_reconcile_subscriptions_job(active_user_ids: list[str]) -> dict:
    db = SessionLocal()
    try:
        result = reconcile_active_subscribers(db, active_user_ids)
        summary = {"active_users": result.active_users, **result.to_api()}
        logger.info("Reconcile subscriptions job completed: %s", summary)
        return summary
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Align case update flags with active paid subscriptions")
    parser.add_argument("user_ids", nargs="*", help="Active subscriber user ids")
    parser.add_argument("--file", dest="file_path", help="File with one user id per line")
    args = parser.parse_args()

    active = _read_user_ids(args.user_ids, args.file_path)
    summary = run_reconcile_subscriptions_job(active)
    print(summary)


if __name__ == "__main__":
    main()
