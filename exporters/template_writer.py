"""Per-template persistence of metadata and HTML to the export directory."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dateutil.parser import isoparse

from errors import ContentUnavailableError
from models import TemplateSummary
from .html_preview import prepare_preview

NO_CONTENT_MESSAGE = 'No HTML content was found for this template.'
FALLBACK_NAME = 'template'


def sanitize_name(name: Optional[str]) -> str:
    """
    Reduce a template name to a filesystem-safe stem.

    Characters other than ASCII letters, digits, underscore, whitespace and
    hyphen are removed; whitespace runs become a single underscore.
    """
    if not name:
        return FALLBACK_NAME
    cleaned = re.sub(r'[^\w\s-]', '', name, flags=re.ASCII)
    cleaned = re.sub(r'\s+', '_', cleaned, flags=re.ASCII)
    return cleaned or FALLBACK_NAME


def format_timestamp(value: Optional[str]) -> str:
    """Render an ISO-8601 provider timestamp for humans, or N/A."""
    if not value:
        return 'N/A'
    # Marketo appends the offset after the Z designator: 2023-01-15T10:30:00Z+0000
    normalized = value[:-5] if value.endswith('Z+0000') else value
    try:
        return isoparse(normalized).strftime('%Y-%m-%d %H:%M:%S')
    except (ValueError, TypeError):
        return str(value)


class TemplateWriter:
    """
    Writes one template to ``<base_dir>/<sanitized_name>_<id>/``.

    The directory receives ``metadata.json`` and ``metadata.txt`` followed by
    either ``<name>.html``, ``no_content.txt`` or ``error.txt``.
    """

    def __init__(
        self,
        content_fetcher,
        folder_resolver,
        preview_placeholders: bool = True,
        write_text_metadata: bool = True,
        require_content: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the writer.

        Args:
            content_fetcher: ContentFetcher used to retrieve HTML
            folder_resolver: FolderPathResolver used for the breadcrumb
            preview_placeholders: Substitute merge tokens and wrap the HTML for preview
            write_text_metadata: Also write the human-readable metadata.txt
            require_content: Treat a template without HTML as a failure
            logger: Logger instance
        """
        self.content_fetcher = content_fetcher
        self.folder_resolver = folder_resolver
        self.preview_placeholders = preview_placeholders
        self.write_text_metadata = write_text_metadata
        self.require_content = require_content
        self.logger = logger or logging.getLogger('marketo_template_exporter.exporters.template_writer')

    @staticmethod
    def directory_name(template: TemplateSummary) -> str:
        return f"{sanitize_name(template.name)}_{template.id}"

    def write_template(self, template: TemplateSummary, base_dir: Union[str, Path]) -> Dict[str, Any]:
        """
        Persist one template.

        Args:
            template: Template to export
            base_dir: Export root directory

        Returns:
            Dictionary with ``directory``, ``status`` ("exported" or "no_content")
            and ``html_path``

        Raises:
            ContentUnavailableError: No HTML and ``require_content`` is set
            Exception: Whatever HTML retrieval raised, after error.txt is written
        """
        template_dir = Path(base_dir) / self.directory_name(template)
        template_dir.mkdir(parents=True, exist_ok=True)

        folder_path = self._resolve_folder_path(template)

        metadata = template.to_metadata()
        metadata['folderPath'] = folder_path
        with open(template_dir / 'metadata.json', 'w', encoding='utf-8') as f:
            json.dump(metadata, f, indent=2, ensure_ascii=False, default=str)

        if self.write_text_metadata:
            with open(template_dir / 'metadata.txt', 'w', encoding='utf-8') as f:
                f.write(self._metadata_text(template, folder_path))

        self.logger.debug(f"Processing HTML content for template {template.id} ({template.name})")

        try:
            html = self.content_fetcher.get_html(template.id)
        except Exception as e:
            with open(template_dir / 'error.txt', 'w', encoding='utf-8') as f:
                f.write(f"Error retrieving HTML content: {str(e)}")
            self.logger.debug(f"Created error file for template {template.id}")
            raise

        if not html:
            with open(template_dir / 'no_content.txt', 'w', encoding='utf-8') as f:
                f.write(NO_CONTENT_MESSAGE)
            self.logger.info(f"No HTML content found for template {template.id}, created placeholder file")
            if self.require_content:
                raise ContentUnavailableError(template.id, f"No HTML content for template {template.id}")
            return {'directory': str(template_dir), 'status': 'no_content', 'html_path': None}

        if self.preview_placeholders:
            html = prepare_preview(html)

        html_path = template_dir / f"{sanitize_name(template.name)}.html"
        with open(html_path, 'w', encoding='utf-8') as f:
            f.write(html)

        self.logger.debug(f"Saved HTML for template {template.id} to {html_path}")
        return {'directory': str(template_dir), 'status': 'exported', 'html_path': str(html_path)}

    def _resolve_folder_path(self, template: TemplateSummary) -> str:
        if not template.folder:
            return self.folder_resolver.format_path([])
        path = self.folder_resolver.resolve_path(template.folder.id, template.folder.type or 'Folder')
        return self.folder_resolver.format_path(path)

    @staticmethod
    def _metadata_text(template: TemplateSummary, folder_path: str) -> str:
        folder_name = template.folder.name if template.folder and template.folder.name else 'Unknown'
        lines = [
            f"Template Name: {template.name}",
            f"ID: {template.id}",
            f"Status: {template.status or 'N/A'}",
            f"Folder: {folder_name}",
            f"Folder Path: {folder_path}",
            f"Created At: {format_timestamp(template.created_at)}",
            f"Updated At: {format_timestamp(template.updated_at)}",
            f"Subject: {template.subject or 'N/A'}",
            f"From Name: {template.from_name or 'N/A'}",
            f"From Email: {template.from_email or 'N/A'}",
            f"Exported At: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        ]
        return '\n'.join(lines) + '\n'
