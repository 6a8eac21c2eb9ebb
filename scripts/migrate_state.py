#!/usr/bin/env python3
"""
Offline migration utility for persisted discovery state.

Upgrades a stored DiscoveryState record to the current schema version
without starting a session (the visit count and timestamps are left as
stored). Useful before shipping a schema change, or to inspect what the
store would make of an old or damaged record.

Usage:
    python scripts/migrate_state.py --storage-dir ./observatory_data --backup --dry-run

The script:
1. Reads the record stored under the key (default "observatory:state")
2. Runs the forward-only migration chain
3. Reports the fields that changed
4. Writes the migrated record back, optionally keeping a .bak copy
"""

import argparse
import json
import shutil
import sys
from pathlib import Path
from typing import Any

from observatory.config import DEFAULT_STORAGE_KEY
from observatory.discovery.migration import migrate, parse_record, record_version
from observatory.discovery.models import SCHEMA_VERSION, DiscoveryState
from observatory.discovery.storage import FileStorage
from observatory.exceptions import CorruptPersistedStateError, StorageUnavailableError


class MigrationError(Exception):
    """Custom exception for migration errors."""
    pass


class StateMigrator:
    """Migrates one stored discovery record to the current schema."""

    def __init__(
        self,
        storage_dir: Path,
        storage_key: str = DEFAULT_STORAGE_KEY,
        backup: bool = False,
        dry_run: bool = False,
    ):
        """Initialize migrator with configuration.

        Args:
            storage_dir: Directory used by FileStorage
            storage_key: Key of the record to migrate
            backup: Whether to keep the original record as .json.bak
            dry_run: Whether to report changes without writing them
        """
        self.storage = FileStorage(storage_dir)
        self.storage_key = storage_key
        self.backup = backup
        self.dry_run = dry_run

    @property
    def state_file(self) -> Path:
        return self.storage.path_for(self.storage_key)

    def _load_raw(self) -> dict[str, Any]:
        try:
            text = self.storage.get(self.storage_key)
        except StorageUnavailableError as e:
            raise MigrationError(str(e)) from e
        if text is None:
            raise MigrationError(f"No stored state found at {self.state_file}")
        try:
            return parse_record(text)
        except CorruptPersistedStateError as e:
            raise MigrationError(f"{self.state_file.name} is corrupt: {e}") from e

    @staticmethod
    def changed_fields(raw: dict[str, Any], migrated: dict[str, Any]) -> list[str]:
        """Record keys whose value differs (or appears) after migration."""
        return sorted(
            key for key, value in migrated.items()
            if key not in raw or raw[key] != value
        )

    def migrate(self) -> DiscoveryState:
        """Run the migration.

        Returns:
            The migrated state (written back unless this is a dry run)

        Raises:
            MigrationError: If the record is missing, corrupt or cannot be written
        """
        raw = self._load_raw()
        version = record_version(raw)
        state = migrate(raw, DiscoveryState.defaults())
        record = state.to_record()
        changed = self.changed_fields(raw, record)

        print(f"Record: {self.state_file}")
        print(f"Version: {version} -> {SCHEMA_VERSION}")
        print(f"Discoveries: {len(state.discoveries)}, visits: {state.visit_count}")
        if not changed:
            print("Already current, nothing to do")
            return state
        print(f"Changed fields: {', '.join(changed)}")

        if self.dry_run:
            print("[DRY RUN] No changes written")
            return state

        if self.backup:
            backup_file = self.state_file.with_suffix(".json.bak")
            shutil.copy2(self.state_file, backup_file)
            print(f"Backed up to: {backup_file.name}")

        try:
            self.storage.set(self.storage_key, json.dumps(record))
        except StorageUnavailableError as e:
            raise MigrationError(str(e)) from e
        print(f"Wrote {self.state_file.name}")
        return state


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Migrate stored discovery state to the current schema",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview migration (dry-run)
  python scripts/migrate_state.py --storage-dir ./observatory_data --dry-run

  # Migrate with backup
  python scripts/migrate_state.py --storage-dir ./observatory_data --backup
        """,
    )
    parser.add_argument(
        "--storage-dir",
        required=True,
        type=Path,
        help="Directory holding the stored state"
    )
    parser.add_argument(
        "--key",
        default=DEFAULT_STORAGE_KEY,
        help=f"Storage key of the record (default: {DEFAULT_STORAGE_KEY})"
    )
    parser.add_argument(
        "--backup",
        action="store_true",
        help="Keep the original record as .json.bak"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without writing"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the migration script."""
    args = parse_args(argv)
    migrator = StateMigrator(
        storage_dir=args.storage_dir,
        storage_key=args.key,
        backup=args.backup,
        dry_run=args.dry_run,
    )
    try:
        migrator.migrate()
    except MigrationError as e:
        print(f"Migration failed: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
