#!/usr/bin/env python3
"""
WhatsApp Media Migrator - Main Entry Point

Moves WhatsApp's locally stored chat media out of the app's internal storage
into a folder tree you can browse, one folder per contact, with files named
after the message timestamp.

Usage:
    python3 whatsapp_main.py -db ChatStorage.sqlite -media Message/Media -target ~/WhatsApp

Behaviour:
- The database is opened read-only
- Files are hard linked when source and target share a filesystem, copied otherwise
- Re-running against the same target skips files that are already linked
- The first error stops the run (files already transferred are kept)
"""

import argparse
import os
import sqlite3
import sys
from typing import List, Optional

from MediaMigrator import MediaMigrator
from MigrationErrors import ConfigurationError, MigrationError
from WhatsAppDatabase import WhatsAppDatabase


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="WhatsApp Media Migrator")
    parser.add_argument("-db", "--db-path", dest="db_path", default="",
                        help="A path to the SQLite DB file (ChatStorage.sqlite)")
    parser.add_argument("-media", "--media-path", dest="media_path", default="",
                        help="A path to the WhatsApp media folder")
    parser.add_argument("-target", "--target-path", dest="target_path", default="",
                        help="A path to the target media folder (created if missing)")
    return parser


def validate_paths(args: argparse.Namespace) -> argparse.Namespace:
    """Check the three required paths and create the target folder if needed"""
    if not args.db_path:
        raise ConfigurationError("Provide the path to the SQLite db file")
    if not args.media_path:
        raise ConfigurationError("Provide the path to the WhatsApp media folder")
    if not args.target_path:
        raise ConfigurationError("Provide the path to the target media folder")

    args.db_path = os.path.expanduser(args.db_path)
    args.media_path = os.path.expanduser(args.media_path)
    args.target_path = os.path.expanduser(args.target_path)

    if not os.path.exists(args.db_path):
        raise ConfigurationError(f"{args.db_path} does not exist")
    if not os.path.exists(args.media_path):
        raise ConfigurationError(f"{args.media_path} does not exist")

    os.makedirs(args.target_path, exist_ok=True)
    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        args = validate_paths(args)

        print("Connecting to WhatsApp database...")
        with WhatsAppDatabase(args.db_path) as db:
            print(f"Connected to database: {args.db_path}")
            MediaMigrator(db, args.media_path, args.target_path).run()

    except (MigrationError, OSError, sqlite3.Error) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Media migrated to: {args.target_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
