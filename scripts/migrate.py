"""Script to run database migrations."""

import sys

from alembic import command
from alembic.config import Config


def run_migrations() -> None:
    """Upgrade the database to the latest revision."""
    alembic_cfg = Config("alembic.ini")

    try:
        print("Running database migrations...")
        command.upgrade(alembic_cfg, "head")
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def create_migration(message: str) -> None:
    """Autogenerate a revision from the table definitions in dental_clinic.models."""
    alembic_cfg = Config("alembic.ini")

    try:
        print(f"Creating migration: {message}")
        command.revision(alembic_cfg, message=message, autogenerate=True)
        print("✓ Migration created successfully!")
    except Exception as e:
        print(f"✗ Migration creation failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) > 2 and sys.argv[1] == "create":
        create_migration(" ".join(sys.argv[2:]))
    elif len(sys.argv) > 1:
        print("Usage: python scripts/migrate.py [create <message>]")
    else:
        run_migrations()
