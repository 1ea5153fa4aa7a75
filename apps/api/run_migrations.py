#!/usr/bin/env python3
"""Database bootstrap: wait for PostgreSQL, then run Alembic migrations.

Production rule:
- Always run `alembic upgrade head` on startup.
- If migrations fail, fail fast (don't start with an unknown schema).
- After migrating, upsert the static badge catalog.
"""

import os
import sys
import time
from dotenv import load_dotenv

load_dotenv()


def check_db_ready():
    """Check if database is ready"""
    import psycopg2
    try:
        conn = psycopg2.connect(
            host=os.getenv('POSTGRES_HOST', 'postgres'),
            port=os.getenv('POSTGRES_PORT', '5432'),
            user=os.getenv('POSTGRES_USER', 'postgres'),
            password=os.getenv('POSTGRES_PASSWORD', 'postgres'),
            database=os.getenv('POSTGRES_DB', 'sprint_coach')
        )
        conn.close()
        return True
    except Exception:
        return False


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


def sync_catalog() -> int:
    from core.database import get_db_sync
    from services.badge_catalog import sync_badge_catalog

    db = get_db_sync()
    try:
        written = sync_badge_catalog(db)
        db.commit()
        return written
    finally:
        db.close()


def main():
    if not os.getenv('DATABASE_URL'):
        print("Waiting for database to be ready...")
        max_retries = 30
        retry_count = 0

        while retry_count < max_retries:
            if check_db_ready():
                print("Database is ready!")
                break
            retry_count += 1
            print(f"Database is unavailable - sleeping (attempt {retry_count}/{max_retries})")
            time.sleep(1)
        else:
            print("ERROR: Database is not ready after maximum retries")
            sys.exit(1)

    try:
        alembic_upgrade_head()
        print("Migrations completed successfully!")
    except Exception as e:
        print(f"ERROR: Alembic upgrade failed: {e}")
        sys.exit(1)

    print(f"Badge catalog synced ({sync_catalog()} row(s) written)")


if __name__ == '__main__':
    main()
