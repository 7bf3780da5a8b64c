import argparse
import os
import sys
from importlib.util import find_spec
from pathlib import Path

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Apply forward-only PostgreSQL migrations for the sync ledger store."
    )
    parser.add_argument(
        "--dsn",
        default=os.getenv("SYNC_POSTGRES_DSN", "").strip(),
        help="PostgreSQL DSN; defaults to SYNC_POSTGRES_DSN.",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="List pending migrations and exit non-zero when any are pending.",
    )
    args = parser.parse_args(argv)

    if not args.dsn:
        raise RuntimeError("POSTGRES_MIGRATION_DSN_REQUIRED")
    if find_spec("psycopg") is None:
        raise RuntimeError("POSTGRES_MIGRATION_DRIVER_MISSING")
    import psycopg
    from psycopg.rows import dict_row

    from syncledger.infrastructure.postgres_migrations import (
        apply_postgres_migrations,
        pending_postgres_migrations,
    )
    from syncledger.infrastructure.store.postgres import MIGRATION_NAMESPACE

    with psycopg.connect(args.dsn, row_factory=dict_row) as connection:
        if args.check:
            pending = pending_postgres_migrations(
                connection=connection, namespace=MIGRATION_NAMESPACE
            )
            for version in pending:
                print(f"Pending migration namespace={MIGRATION_NAMESPACE} version={version}")
            return 1 if pending else 0
        applied = apply_postgres_migrations(connection=connection, namespace=MIGRATION_NAMESPACE)
    print(f"Applied migrations for namespace={MIGRATION_NAMESPACE}: {applied or 'none'}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
