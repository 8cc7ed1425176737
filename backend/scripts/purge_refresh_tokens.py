"""
Delete expired refresh tokens.
Meant for cron: python scripts/purge_refresh_tokens.py

Expired tokens are already rejected (and consumed) on use; this only keeps
the table from accumulating rows for devices that never come back.
"""

import logging
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sessionauth.core.database import SessionLocal
from sessionauth.core.exceptions import StorageUnavailableError
from sessionauth.services.token_store import token_store


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    db = SessionLocal()
    try:
        purged = token_store.purge_expired(db)
    except StorageUnavailableError:
        sys.exit(1)
    finally:
        db.close()
    print(f"Purged {purged} expired refresh tokens.")


if __name__ == "__main__":
    main()
