#!/usr/bin/env python3
"""mastoutil - maintenance commands for the local account store.

Usage:
  mastoutil status                      # Check/repair schema, show row counts
  mastoutil status --json               # Same, machine-readable
  mastoutil reset --yes                 # Drop and recreate every relation
  mastoutil search "rust developer"     # Full-text profile search
  mastoutil config --init               # Write an example config file
"""

import argparse
import logging
import sys

from . import __version__


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="mastoutil",
        description="Local store for Mastodon profiles, follows and notifications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES:
  mastoutil status
  mastoutil --db /tmp/scratch.db status --json
  mastoutil search "@alice@mastodon.social"
  mastoutil reset --yes

Run 'mastoutil <command> --help' for detailed command help.
"""
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--db", metavar="PATH", default=None, help="Use this data file instead of the configured one")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # status
    status_parser = subparsers.add_parser(
        "status", help="Reconcile the schema and report row counts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
A partially built store (some relations missing) is dropped and rebuilt
empty. A brand-new file gets the full schema.
"""
    )
    status_parser.add_argument("--json", action="store_true", help="Output JSON")

    # reset
    reset_parser = subparsers.add_parser("reset", help="Drop and recreate every relation")
    reset_parser.add_argument("--yes", action="store_true", help="Confirm data loss")

    # search
    search_parser = subparsers.add_parser(
        "search", help="Full-text search over stored profiles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES:
  mastoutil search rust
  mastoutil search "photo*" --limit 5
  mastoutil search "linux NOT windows"
"""
    )
    search_parser.add_argument("query", help="FTS query")
    search_parser.add_argument("--limit", type=int, default=None, help="Max results (default: from config)")

    # config
    config_parser = subparsers.add_parser(
        "config", help="Manage configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES:
  mastoutil config                # Show current config
  mastoutil config --init         # Create config file with defaults
  mastoutil config --path         # Show config file path

CONFIG LOCATION:
  ~/.config/mastoutil/config.yaml
"""
    )
    config_parser.add_argument("--init", action="store_true", help="Create config file with example settings")
    config_parser.add_argument("--path", action="store_true", help="Show config file path")
    config_parser.add_argument("--force", action="store_true", help="Overwrite existing config (with --init)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "status":
        from .store_cmd import run_status as run
    elif args.command == "reset":
        from .store_cmd import run_reset as run
    elif args.command == "search":
        from .store_cmd import run_search as run
    elif args.command == "config":
        from .config import find_config_file, init_config, show_config
        if args.path:
            config_file = find_config_file()
            if config_file:
                print(config_file)
            else:
                print("(no config file - using defaults)")
            return 0
        elif args.init:
            try:
                path = init_config(force=args.force)
                print(f"✓ Created config file: {path}")
                return 0
            except FileExistsError as e:
                print(f"✗ {e}")
                print("  Use --force to overwrite.")
                return 1
        else:
            show_config()
            return 0
    else:
        parser.print_help()
        return 2

    return run(args)


if __name__ == "__main__":
    sys.exit(main())
