#!/usr/bin/env python3
"""Database bootstrap: run Alembic migrations.

- Always run `alembic upgrade head` on startup.
- If migrations fail, fail fast (don't start with an unknown schema).
"""

import os
import sys
import time

from dotenv import load_dotenv
from sqlalchemy.exc import OperationalError

load_dotenv()


def _get_alembic_config():
    """Load Alembic config for programmatic migrations."""
    from alembic.config import Config

    here = os.path.dirname(os.path.abspath(__file__))
    cfg = Config(os.path.join(here, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(here, "alembic"))
    return cfg


def alembic_upgrade_head() -> None:
    """Apply all pending migrations."""
    from alembic import command

    command.upgrade(_get_alembic_config(), "head")


def main(max_attempts: int = 5) -> int:
    for attempt in range(max_attempts):
        try:
            alembic_upgrade_head()
            print("Migrations applied")
            return 0
        except OperationalError as e:
            if attempt == max_attempts - 1:
                print(f"Database not reachable after {max_attempts} attempts: {e}", file=sys.stderr)
                return 1
            print(f"Database not ready, retrying ({attempt + 1}/{max_attempts})...")
            time.sleep(2 ** attempt)
    return 1


if __name__ == "__main__":
    sys.exit(main())
