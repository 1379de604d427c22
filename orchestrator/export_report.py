"""
Export report formatting.

Renders an ExportResult for console display and exports it as JSON.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from logger import format_duration
from models import ExportResult


class ExportReport:
    """Formats the outcome of a bulk export."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('marketo_template_exporter.report')

    def build_report(self, result: ExportResult) -> Dict[str, Any]:
        """Result dictionary with a generation timestamp."""
        report = result.to_dict()
        report['percentComplete'] = result.percent_complete
        report['timestamp'] = datetime.now().isoformat()
        return report

    def format_console_report(self, result: ExportResult) -> str:
        """
        Format the result for console display.

        Args:
            result: Finished export result

        Returns:
            Multi-line summary followed by the list of failures
        """
        sections = []

        sections.append("=" * 60)
        sections.append("EXPORT REPORT")
        sections.append("=" * 60)
        sections.append("")

        sections.append("Summary:")
        sections.append(f"  Total:       {result.total}")
        sections.append(f"  Succeeded:   {result.successful}")
        sections.append(f"  Failed:      {result.failed}")
        sections.append(f"  Completed:   {result.percent_complete}%")
        sections.append(f"  Duration:    {format_duration(result.duration_seconds)}")
        if result.output_dir:
            sections.append(f"  Output:      {result.output_dir}")
        if result.archive_path:
            sections.append(f"  Archive:     {result.archive_path}")
        if result.archive_error:
            sections.append(f"  Archive:     FAILED ({result.archive_error})")

        if result.warnings:
            sections.append("")
            sections.append("Warnings:")
            for warning in result.warnings:
                sections.append(f"  - {warning}")

        if result.errors:
            sections.append("")
            sections.append(f"Errors ({len(result.errors)}):")
            sections.append("-" * 60)
            for error in result.errors:
                sections.append(f"  Template {error.item_id}: {error.message}")

        sections.append("")
        sections.append("=" * 60)

        return "\n".join(sections)

    def export_json_report(self, result: ExportResult, filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            result: Finished export result
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(self.build_report(result), f, indent=2, ensure_ascii=False, default=str)

            self.logger.info(f"JSON report exported to {filepath}")

        except OSError as e:
            self.logger.error(f"Failed to export JSON report: {str(e)}")
