#!/usr/bin/env python3
"""
Create (or drop and recreate) the inventory schema.

Reads settings through inventory_config, so INVENTORY_CONFIG and the
INVENTORY_* overrides apply.  --database-url wins over both.

Usage:
  python3 scripts/init_inventory_db.py
  python3 scripts/init_inventory_db.py --reset
  python3 scripts/init_inventory_db.py --database-url sqlite:///inventory.db
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create the inventory kernel schema")
    p.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML (default: INVENTORY_CONFIG or the packaged default)",
    )
    p.add_argument(
        "--database-url",
        default=None,
        help="Database URL (overrides the settings file)",
    )
    p.add_argument(
        "--reset",
        action="store_true",
        help="Drop all inventory tables before creating them",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from dataclasses import replace

    from sqlalchemy import inspect

    from inventory_config import get_active_settings
    from inventory_kernel.db.engine import (
        create_tables,
        drop_tables,
        get_engine,
        init_engine_from_url,
        reset_engine,
    )

    settings = get_active_settings(args.config)
    if args.database_url:
        settings = replace(settings, database_url=args.database_url)

    init_engine_from_url(
        settings.database_url,
        echo=settings.echo,
        busy_timeout_seconds=settings.busy_timeout_seconds,
    )
    try:
        if args.reset:
            print("  Dropping inventory tables...")
            drop_tables()
        create_tables()
        tables = sorted(inspect(get_engine()).get_table_names())
        print(f"  Schema ready on {get_engine().dialect.name}: {', '.join(tables)}")
    finally:
        reset_engine()
    return 0


if __name__ == "__main__":
    sys.exit(main())
