#!/usr/bin/env python3
"""
Upgrade a History Tracker file to the current layout.

Files written by older releases (German section titles with one field per
line, or compact lines with ``DD.MM.YYYY, HH:MM:SS`` timestamps) are still
read by the integration, but only rewritten on the next reading. This script
rewrites them right away and keeps a backup of the original.

Usage:
    python scripts/migrate_history.py PATH [--unit UNIT] [--dry-run]
"""

import argparse
import logging
import shutil
import sys
from datetime import datetime
from pathlib import Path

# Make the custom_components package importable when run as a script
sys.path.insert(0, str(Path(__file__).parent.parent))

from custom_components.history_tracker.const import DEFAULT_UNIT
from custom_components.history_tracker.exceptions import StorageWriteError
from custom_components.history_tracker.history_file import (
    FORMAT_VERSION,
    decode,
    save_state,
)
from custom_components.history_tracker.periods import Granularity

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

CURRENT_HEADER = f"# History Tracker file format v{FORMAT_VERSION}"


class MigrationError(Exception):
    """Raised when a history file cannot be migrated."""


class HistoryMigrator:
    """Rewrites one history file in the current layout."""

    def __init__(self, path: str, unit: str = DEFAULT_UNIT, *, dry_run: bool = False):
        """Initialize the migrator."""
        self.path = Path(path)
        self.unit = unit
        self.dry_run = dry_run
        self.stats = {granularity.value: 0 for granularity in Granularity}
        self.backup_path: Path | None = None

    def _read(self) -> str:
        if not self.path.exists():
            raise MigrationError(f"History file not found: {self.path}")
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise MigrationError(f"Failed to read history file: {e}") from e

    def _backup(self) -> None:
        self.backup_path = self.path.with_suffix(
            f"{self.path.suffix}.backup.{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        )
        shutil.copy2(self.path, self.backup_path)
        logger.info("Created backup: %s", self.backup_path)

    def migrate(self) -> bool:
        """Perform the migration, returning True if the file was rewritten."""
        logger.info("Migrating %s (dry run: %s)", self.path, self.dry_run)
        text = self._read()

        if text.startswith(CURRENT_HEADER):
            logger.info("%s already uses format v%d", self.path, FORMAT_VERSION)
            return False

        state = decode(text)
        if state.last_value.value is None:
            raise MigrationError(f"No readings found in {self.path}")

        for granularity in Granularity:
            self.stats[granularity.value] = len(state.history(granularity))

        self._print_statistics()
        if self.dry_run:
            logger.info("DRY RUN: Would rewrite %s", self.path)
            return False

        self._backup()
        try:
            save_state(self.path, state, self.unit)
        except StorageWriteError as e:
            raise MigrationError(str(e)) from e

        logger.info("Rewrote %s in format v%d", self.path, FORMAT_VERSION)
        return True

    def _print_statistics(self) -> None:
        """Print how much history was found."""
        logger.info("History entries found:")
        for name, count in self.stats.items():
            logger.info("  %s: %d", name, count)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Upgrade a History Tracker file")
    parser.add_argument("path", help="Path to the history file")
    parser.add_argument(
        "--unit",
        default=DEFAULT_UNIT,
        help=f"Unit written next to every value (default: {DEFAULT_UNIT})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Perform a dry run without making actual changes",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        HistoryMigrator(args.path, args.unit, dry_run=args.dry_run).migrate()
    except MigrationError as e:
        logger.error("Migration failed: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Migration cancelled by user")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
