"""Export package for writing Marketo email templates to the local filesystem.

Package Structure:
- template_writer: Per-template directory with metadata.json, metadata.txt and HTML
- html_preview: Merge-token substitution and standalone preview wrapping
- archiver: ZIP archive of a finished export directory
- csv_exporter: Flat CSV listing of templates

Configuration Referenced:
- export.output_directory: Base output path for exported files
- export.preview_placeholders: Enable/disable merge-token substitution
- export.write_text_metadata: Enable/disable metadata.txt
- export.require_content: Count templates without HTML as failures
- export.compression_level: Deflate level for the archive
"""

from .template_writer import TemplateWriter, sanitize_name
from .html_preview import prepare_preview, substitute_placeholders, wrap_for_display
from .archiver import create_archive, default_archive_path
from .csv_exporter import templates_to_csv, write_templates_csv

__all__ = [
    'TemplateWriter',
    'sanitize_name',
    'prepare_preview',
    'substitute_placeholders',
    'wrap_for_display',
    'create_archive',
    'default_archive_path',
    'templates_to_csv',
    'write_templates_csv'
]
