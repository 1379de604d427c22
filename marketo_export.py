#!/usr/bin/env python3
"""
Marketo Template Exporter - Main CLI Entry Point

Exports every Marketo email template (metadata and rendered HTML) to a
local directory tree, optionally bundled into a ZIP archive, or serves a
small web UI for browsing templates and running exports from a browser.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from tqdm import tqdm

from config_loader import ConfigLoader, get_nested
from errors import AuthenticationError
from exporters.csv_exporter import write_templates_csv
from logger import log_config, log_section, setup_logging
from models import ProgressEvent
from orchestrator import ExportReport, build_components

__version__ = "1.0.0"


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='marketo-export',
        description="Export Marketo email templates before account cancellation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Credentials are read from the environment (or a .env file):
  MARKETO_CLIENT_ID, MARKETO_CLIENT_SECRET, MARKETO_IDENTITY_URL, MARKETO_REST_URL

Examples:
  # Export every template
  python marketo_export.py export

  # Export into a custom directory and zip it
  python marketo_export.py export -o ./my-exports --zip

  # Also write a CSV listing and a JSON report
  python marketo_export.py export --csv templates.csv --report report.json

  # Start the web UI on port 3000
  python marketo_export.py serve --port 3000
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to YAML configuration file (default: built-in defaults + environment)'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Write logs to this file as well'
    )

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')
    subparsers.required = True

    export_parser = subparsers.add_parser('export', help='Export all email templates')
    export_parser.add_argument(
        '-o', '--output',
        type=str,
        help='Output directory (default: ./marketo-exports)'
    )
    export_parser.add_argument(
        '-z', '--zip',
        action='store_true',
        help='Create a ZIP archive of the export'
    )
    export_parser.add_argument(
        '--batch-size',
        type=int,
        help='Templates exported concurrently per batch (default: 5)'
    )
    export_parser.add_argument(
        '--page-size',
        type=int,
        help='Templates requested per page (default: 200, maximum 200)'
    )
    export_parser.add_argument(
        '--max-pages',
        type=int,
        help='Maximum pages to request when listing (default: 50)'
    )
    export_parser.add_argument(
        '--report',
        type=str,
        help='Write a JSON report of the export to this path'
    )
    export_parser.add_argument(
        '--csv',
        type=str,
        help='Write a CSV listing of all templates to this path'
    )

    serve_parser = subparsers.add_parser('serve', help='Start the web UI')
    serve_parser.add_argument('--host', type=str, help='Bind address (default: 127.0.0.1)')
    serve_parser.add_argument('--port', type=int, help='Port (default: 3000)')

    return parser


class ConsoleProgress:
    """tqdm progress bar fed by orchestrator progress events."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.bar: Optional[tqdm] = None

    def __call__(self, event: ProgressEvent) -> None:
        if event.stage == 'listing':
            if event.level == 'warning':
                tqdm.write(f"WARNING: {event.message}", file=sys.stderr)
            elif self.bar is None:
                tqdm.write(event.message, file=sys.stderr)
            return

        if event.stage == 'item':
            if self.bar is None:
                self.bar = tqdm(total=event.total, desc="Exporting templates", unit="template",
                                disable=not self.enabled)
            self.bar.update(1)
            self.bar.set_postfix(ok=event.successful, failed=event.failed)
            if event.level == 'error':
                self.bar.write(event.message, file=sys.stderr)
            return

        if event.stage == 'archive':
            tqdm.write(event.message, file=sys.stderr)

    def close(self) -> None:
        if self.bar is not None:
            self.bar.close()
            self.bar = None


def run_export(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """
    Run a full export.

    Returns:
        0 when the run completed (even with failed templates), 1 otherwise
    """
    components = build_components(config)
    output_dir = Path(get_nested(config, 'export.output_directory', './marketo-exports'))

    log_section("Exporting Marketo Email Templates")

    logger.info("Authenticating with Marketo...")
    components.token_store.get_token()

    progress = ConsoleProgress(enabled=get_nested(config, 'export.progress_bars', True))
    try:
        result = components.new_orchestrator().export_all(
            output_dir,
            batch_size=get_nested(config, 'export.batch_size'),
            progress_callback=progress,
            create_zip=get_nested(config, 'export.create_zip', False)
        )
    finally:
        progress.close()

    report = ExportReport(logger=logger)
    print(report.format_console_report(result))

    if getattr(args, 'report', None):
        report.export_json_report(result, args.report)

    if getattr(args, 'csv', None):
        with open(args.csv, 'w', newline='', encoding='utf-8') as f:
            count = write_templates_csv(result.templates, f)
        print(f"CSV listing of {count} templates written to {args.csv}")

    return 0


def run_server(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Start the web UI and block until it is stopped."""
    import uvicorn

    from web.app import create_app

    host = args.host or get_nested(config, 'server.host', '127.0.0.1')
    port = args.port or get_nested(config, 'server.port', 3000)

    log_section("Marketo Template Exporter Web UI")
    logger.info(f"Serving on http://{host}:{port}")
    uvicorn.run(create_app(config), host=host, port=port, log_level='warning')
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    load_dotenv()

    try:
        config = ConfigLoader.load(args.config)
        config = ConfigLoader.merge_with_args(config, args)

        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=get_nested(config, 'logging.level')
        )
        logger = logging.getLogger('marketo_template_exporter.cli')

        ConfigLoader.validate(config)
        log_config(config)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except yaml.YAMLError as e:
        print(f"ERROR: Invalid configuration file: {e}", file=sys.stderr)
        return 2

    try:
        if args.command == 'serve':
            return run_server(config, args, logger)
        return run_export(config, args, logger)

    except AuthenticationError as e:
        print(f"ERROR: Authentication failed: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nExport interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        logger.debug("Export failed", exc_info=True)
        print(f"ERROR: Export failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
