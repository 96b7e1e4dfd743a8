"""Command-line interface for the booking mapper."""

import argparse
import json
import logging
import sys
from pathlib import Path

import uvicorn

from .config import settings


def main(argv=None):
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Booking Mapper - platform-aware booking import mapping"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Server command
    server_parser = subparsers.add_parser("serve", help="Start the web server")
    server_parser.add_argument(
        "--host", default=settings.host, help=f"Host to bind to (default: {settings.host})"
    )
    server_parser.add_argument(
        "--port", type=int, default=settings.port, help=f"Port to bind to (default: {settings.port})"
    )
    server_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    # Preview command
    preview_parser = subparsers.add_parser(
        "preview", help="Derive booking drafts from a file without committing"
    )
    preview_parser.add_argument("file", type=Path, help="CSV or XLSX file to import")
    preview_parser.add_argument(
        "--template",
        "-t",
        type=Path,
        required=True,
        help="JSON file with platform-bucketed field mappings",
    )
    preview_parser.add_argument(
        "--limit", type=int, default=5, help="Drafts to show per listing (default: 5)"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        run_server(args.host, args.port, args.reload)
    elif args.command == "preview":
        sys.exit(run_preview(args.file, args.template, args.limit))
    else:
        parser.print_help()
        sys.exit(1)


def run_server(host: str, port: int, reload: bool):
    """Run the web server."""
    uvicorn.run(
        "bookingmapper.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


def run_preview(file_path: Path, template_path: Path, limit: int = 5) -> int:
    """Parse a file, derive drafts and print them grouped by listing."""
    from .catalog import CatalogParseError, CatalogParser
    from .engine import DerivationPipeline
    from .mapping import MappingError, MappingRuleSet, MappingValidator

    try:
        field_mappings = json.loads(template_path.read_text(encoding="utf-8"))
        rule_set = MappingRuleSet.from_platform_mappings(field_mappings)
    except (OSError, ValueError) as e:
        print(f"Could not read template {template_path}: {e}")
        return 1

    try:
        catalog = CatalogParser().parse_file(file_path)
    except (OSError, CatalogParseError) as e:
        print(f"Could not parse {file_path}: {e}")
        return 1

    validator = MappingValidator()
    validation = validator.validate_rule_set(rule_set, catalog)
    for warning in validation.warnings:
        print(f"Warning: {warning}")
    try:
        validator.ensure_valid(rule_set, catalog)
    except MappingError as e:
        print(f"Invalid mapping: {e}")
        return 1

    result = DerivationPipeline().derive(catalog, rule_set)

    print(f"{catalog.total_rows} rows, {len(result.groups)} listings")
    print("Platforms: " + ", ".join(f"{k}={v}" for k, v in result.platform_counts.items()))
    print("=" * 40)
    for listing_name, drafts in result.groups.items():
        print(f"\n{listing_name} ({len(drafts)} bookings)")
        for draft in drafts[:limit]:
            code = draft.reservation_code or "?"
            guest = draft.fields.get("guest_name", "")
            payout = draft.fields.get("total_payout", "")
            print(f"  row {draft.row_index}: {code} {guest} [{draft.platform.value}] {payout}")
            for field_name, message in draft.flags.items():
                print(f"    ! {field_name}: {message}")
        if len(drafts) > limit:
            print(f"  ... {len(drafts) - limit} more")

    if result.flagged_rows:
        print(f"\n{len(result.flagged_rows)} rows have flagged fields")
    return 0


if __name__ == "__main__":
    main()
