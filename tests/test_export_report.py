"""Tests for export report rendering."""

import json

from models import ExportResult
from orchestrator.export_report import ExportReport


def sample_result():
    result = ExportResult(total=3, output_dir='/exports/run', duration_seconds=75.0)
    result.record_success()
    result.record_success()
    result.record_failure(1003, 'Marketo API Error (709): Asset not accessible', 'Re-engagement')
    result.warnings.append('Reached maximum page limit (50) after 10000 templates. Some templates may be missing.')
    return result


def test_console_report_lists_counts_and_failures():
    text = ExportReport().format_console_report(sample_result())

    assert 'EXPORT REPORT' in text
    assert 'Total:       3' in text
    assert 'Succeeded:   2' in text
    assert 'Failed:      1' in text
    assert 'Completed:   100%' in text
    assert 'Duration:    1m 15s' in text
    assert 'Template 1003: Marketo API Error (709): Asset not accessible' in text
    assert 'Reached maximum page limit' in text


def test_console_report_shows_archive_outcome():
    result = sample_result()
    result.archive_error = 'disk full'

    assert 'Archive:     FAILED (disk full)' in ExportReport().format_console_report(result)


def test_json_report(tmp_path):
    path = tmp_path / 'report.json'

    ExportReport().export_json_report(sample_result(), str(path))

    report = json.loads(path.read_text(encoding='utf-8'))
    assert report['total'] == 3
    assert report['failed'] == 1
    assert report['errors'] == [{
        'itemId': 1003,
        'itemName': 'Re-engagement',
        'message': 'Marketo API Error (709): Asset not accessible'
    }]
    assert 'timestamp' in report
