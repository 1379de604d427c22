"""CSV listing of email templates."""

import csv
import io
from typing import Iterable, List, TextIO

from models import TemplateSummary
from .template_writer import format_timestamp

CSV_COLUMNS: List[str] = [
    'id',
    'name',
    'description',
    'subject',
    'fromName',
    'fromEmail',
    'replyTo',
    'status',
    'createdAt',
    'updatedAt',
    'Folder ID',
    'Folder Name',
    'Folder Type'
]


def _row(template: TemplateSummary) -> dict:
    folder = template.folder
    return {
        'id': template.id,
        'name': template.name,
        'description': template.description or '',
        'subject': template.subject or '',
        'fromName': template.from_name or '',
        'fromEmail': template.from_email or '',
        'replyTo': template.reply_to or '',
        'status': template.status or '',
        'createdAt': format_timestamp(template.created_at) if template.created_at else '',
        'updatedAt': format_timestamp(template.updated_at) if template.updated_at else '',
        'Folder ID': folder.id if folder else '',
        'Folder Name': (folder.name or '') if folder else '',
        'Folder Type': (folder.type or '') if folder else ''
    }


def write_templates_csv(templates: Iterable[TemplateSummary], stream: TextIO) -> int:
    """
    Write a header row and one row per template.

    Returns:
        Number of template rows written
    """
    writer = csv.DictWriter(stream, fieldnames=CSV_COLUMNS)
    writer.writeheader()
    count = 0
    for template in templates:
        writer.writerow(_row(template))
        count += 1
    return count


def templates_to_csv(templates: Iterable[TemplateSummary]) -> str:
    buffer = io.StringIO()
    write_templates_csv(templates, buffer)
    return buffer.getvalue()


__all__ = ['CSV_COLUMNS', 'write_templates_csv', 'templates_to_csv']
