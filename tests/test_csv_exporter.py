"""Tests for the CSV template listing."""

import csv
import io

from exporters.csv_exporter import CSV_COLUMNS, templates_to_csv
from marketo_fakes import make_template
from models import TemplateSummary


def test_header_and_rows():
    templates = [
        TemplateSummary.from_api(make_template(1, 'Welcome', folder_id=10, replyEmail='reply@example.com')),
        TemplateSummary.from_api({'id': 2, 'name': 'Bare, with comma'}),
    ]

    rows = list(csv.DictReader(io.StringIO(templates_to_csv(templates))))

    assert list(rows[0].keys()) == CSV_COLUMNS
    assert rows[0]['id'] == '1'
    assert rows[0]['subject'] == 'Subject 1'
    assert rows[0]['replyTo'] == 'reply@example.com'
    assert rows[0]['createdAt'] == '2023-01-15 10:30:00'
    assert rows[0]['Folder ID'] == '10'
    assert rows[0]['Folder Name'] == 'Folder 10'
    assert rows[0]['Folder Type'] == 'Folder'
    assert rows[1]['name'] == 'Bare, with comma'
    assert rows[1]['Folder ID'] == ''
    assert rows[1]['createdAt'] == ''


def test_empty_listing_has_header_only():
    assert templates_to_csv([]).strip() == ','.join(CSV_COLUMNS)
