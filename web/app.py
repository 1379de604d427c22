"""
Progress web UI for browsing templates and running bulk exports.

Serves JSON endpoints for listing and inspecting email templates, HTML
preview and download of a single template, and a streamed bulk export
whose progress lines are written to the browser while the orchestrator
runs in a worker thread.
"""

import html
import logging
import queue
import re
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import requests
from fastapi import FastAPI, Query, Request
from fastapi.responses import (FileResponse, HTMLResponse, JSONResponse, RedirectResponse, Response,
                               StreamingResponse)

from config_loader import get_nested
from errors import MarketoExportError
from exporters.archiver import create_archive
from exporters.csv_exporter import templates_to_csv
from exporters.html_preview import prepare_preview, wrap_for_display
from exporters.template_writer import sanitize_name
from models import ProgressEvent, TemplateSummary
from orchestrator.components import ExportComponents, build_components

logger = logging.getLogger('marketo_template_exporter.web')

_ARCHIVE_NAME_PATTERN = re.compile(r'^[A-Za-z0-9_.-]+\.zip$')
_EXPORT_DIR_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]*$')
_STREAM_DONE = object()

_LEVEL_COLORS = {
    'info': '#333333',
    'warning': '#b26a00',
    'error': '#c62828'
}


def _fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'success': False, 'message': message})


def _parse_id(email_id: str) -> Optional[int]:
    return int(email_id) if email_id.isdigit() else None


def create_app(config: Dict[str, Any], components: Optional[ExportComponents] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Validated configuration dictionary
        components: Pre-built components (built from config when omitted)

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="Marketo Template Exporter",
        description="Browse Marketo email templates and export them before account cancellation."
    )
    app.state.config = config
    app.state.components = components or build_components(config)
    app.state.exports_root = Path(get_nested(config, 'server.exports_root', './exports'))

    @app.exception_handler(MarketoExportError)
    async def marketo_error_handler(request: Request, exc: MarketoExportError) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _fail(500, str(exc))

    @app.exception_handler(requests.exceptions.RequestException)
    async def transport_error_handler(request: Request, exc: requests.exceptions.RequestException) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _fail(500, f"Request to Marketo failed: {exc}")

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    def index() -> str:
        return _INDEX_PAGE

    @app.post("/test-connection", summary="Verify credentials against Marketo")
    def test_connection() -> Dict[str, Any]:
        app.state.components.client.test_connection()
        return {'success': True, 'message': 'Successfully connected to Marketo.'}

    @app.get("/templates", summary="One page of email templates")
    def list_templates(
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=200, alias='pageSize')
    ) -> Dict[str, Any]:
        offset = (page - 1) * page_size
        data = app.state.components.client.list_emails(max_return=page_size, offset=offset)
        templates = [TemplateSummary.from_api(item) for item in data.get('result') or []]
        return {
            'success': True,
            'page': page,
            'pageSize': page_size,
            'hasMore': len(templates) == page_size,
            'templates': [template.to_metadata() for template in templates]
        }

    @app.get("/template-count", summary="Count all email templates")
    def template_count(include_data: bool = Query(False, alias='includeData')) -> Dict[str, Any]:
        paginator = app.state.components.new_paginator()
        payload: Dict[str, Any] = {'success': True}

        if include_data:
            templates = paginator.list_all()
            payload['totalTemplates'] = len(templates)
            payload['templates'] = [template.to_metadata() for template in templates]
        else:
            payload['totalTemplates'] = paginator.count()

        payload['truncated'] = paginator.limit_exceeded is not None
        payload['warnings'] = list(paginator.warnings)
        return payload

    @app.get("/all-templates", summary="Every email template as JSON or CSV")
    def all_templates(export_format: str = Query('json', alias='format')):
        templates = app.state.components.new_paginator().list_all()

        if export_format.lower() == 'csv':
            return Response(
                content=templates_to_csv(templates),
                media_type='text/csv',
                headers={'Content-Disposition': 'attachment; filename=marketo_templates.csv'}
            )

        return {
            'success': True,
            'message': f"Successfully fetched all {len(templates)} templates.",
            'totalTemplates': len(templates),
            'templates': [template.to_metadata() for template in templates]
        }

    @app.get("/email/{email_id}", summary="Template details with folder path")
    def email_details(email_id: str):
        template_id = _parse_id(email_id)
        if template_id is None:
            return _fail(400, f"Invalid email id: {email_id}")

        data = app.state.components.client.get_email(template_id)
        if data is None:
            return _fail(404, f"Email {template_id} not found")

        template = TemplateSummary.from_api(data)
        resolver = app.state.components.folder_resolver
        path = resolver.resolve_path(template.folder.id, template.folder.type or 'Folder') if template.folder else []

        email = template.to_metadata()
        email['folderPath'] = resolver.format_path(path)
        email['folderPathArray'] = [{'id': node.id, 'name': node.name, 'type': node.type} for node in path]
        return {'success': True, 'email': email}

    @app.get("/email/{email_id}/content", summary="Raw template HTML")
    def email_content(email_id: str):
        template_id = _parse_id(email_id)
        if template_id is None:
            return _fail(400, f"Invalid email id: {email_id}")

        content = app.state.components.content_fetcher.get_html(template_id)
        if not content:
            return _fail(404, f"No HTML content found for email {template_id}")
        return {'success': True, 'content': content}

    @app.get("/email/{email_id}/view", response_class=HTMLResponse, summary="Rendered template preview")
    def email_view(email_id: str):
        template_id = _parse_id(email_id)
        if template_id is None:
            return _fail(400, f"Invalid email id: {email_id}")

        content = app.state.components.content_fetcher.get_html(template_id)
        if not content:
            return _fail(404, f"No HTML content found for email {template_id}")
        return HTMLResponse(wrap_for_display(content))

    @app.get("/email/{email_id}/download", summary="Download template HTML")
    def email_download(email_id: str):
        template_id = _parse_id(email_id)
        if template_id is None:
            return _fail(400, f"Invalid email id: {email_id}")

        data = app.state.components.client.get_email(template_id)
        if data is None:
            return _fail(404, f"Email {template_id} not found")

        content = app.state.components.content_fetcher.get_html(template_id)
        if not content:
            return _fail(404, f"No HTML content found for email {template_id}")

        filename = f"{sanitize_name(data.get('name'))}.html"
        return Response(
            content=prepare_preview(content),
            media_type='text/html',
            headers={'Content-Disposition': f'attachment; filename="{filename}"'}
        )

    @app.get("/bulk-download", summary="Export every template, streaming progress")
    def bulk_download(create_zip: bool = Query(True, alias='zip')) -> StreamingResponse:
        exports_root: Path = app.state.exports_root
        export_name = _new_export_name()
        output_dir = exports_root / export_name

        return StreamingResponse(
            _stream_export(app.state.components, output_dir, create_zip),
            media_type='text/html'
        )

    @app.get("/exports", summary="Previous export directories and archives")
    def list_exports() -> Dict[str, Any]:
        exports_root: Path = app.state.exports_root
        entries = []
        if exports_root.is_dir():
            for entry in sorted(exports_root.iterdir(), key=lambda p: p.name, reverse=True):
                stat = entry.stat()
                entries.append({
                    'name': entry.name,
                    'type': 'directory' if entry.is_dir() else 'archive',
                    'size': stat.st_size if entry.is_file() else None,
                    'modified': datetime.fromtimestamp(stat.st_mtime).isoformat(),
                    'downloadUrl': f"/download-archive/{entry.name}" if entry.suffix == '.zip' else None
                })
        return {'success': True, 'exports': entries}

    @app.get("/create-archive/{dirname}", summary="Zip an existing export directory")
    def create_export_archive(dirname: str):
        if not _EXPORT_DIR_PATTERN.match(dirname) or dirname.endswith('.zip'):
            return _fail(400, f"Invalid export directory name: {dirname}")

        exports_root: Path = app.state.exports_root
        source = exports_root / dirname
        if not source.is_dir():
            return _fail(404, f"Export directory not found: {dirname}")

        archive_path = create_archive(
            source,
            exports_root / f"{dirname}.zip",
            compression_level=get_nested(app.state.config, 'export.compression_level', 5)
        )
        return RedirectResponse(f"/download-archive/{Path(archive_path).name}", status_code=303)

    @app.get("/download-archive/{name}", summary="Download a finished export archive")
    def download_archive(name: str):
        if not _ARCHIVE_NAME_PATTERN.match(name):
            return _fail(400, f"Invalid archive name: {name}")

        archive_path = app.state.exports_root / name
        if not archive_path.is_file():
            return _fail(404, f"Archive not found: {name}")

        return FileResponse(str(archive_path), media_type='application/zip', filename=name)

    return app


def _new_export_name() -> str:
    """Timestamped directory name, unique even for runs started in the same second."""
    return f"marketo-export-{datetime.now().strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:8]}"


def _stream_export(components: ExportComponents, output_dir: Path, create_zip: bool) -> Iterator[str]:
    """Run the export in a worker thread and yield one HTML line per event."""
    events: "queue.Queue[Any]" = queue.Queue()
    outcome: Dict[str, Any] = {}

    def run() -> None:
        try:
            orchestrator = components.new_orchestrator()
            outcome['result'] = orchestrator.export_all(
                output_dir, progress_callback=events.put, create_zip=create_zip
            )
        except Exception as e:
            logger.error(f"Bulk export failed: {e}", exc_info=True)
            outcome['error'] = e
        finally:
            events.put(_STREAM_DONE)

    worker = threading.Thread(target=run, name='bulk-export', daemon=True)
    worker.start()

    yield _STREAM_HEADER

    while True:
        event = events.get()
        if event is _STREAM_DONE:
            break
        yield _progress_line(event)

    worker.join()

    if 'error' in outcome:
        yield (f'<p style="color:{_LEVEL_COLORS["error"]}"><strong>Export failed:</strong> '
               f'{html.escape(str(outcome["error"]))}</p>\n')
    else:
        result = outcome['result']
        yield (f"<h3>Export complete</h3><p>{result.successful} of {result.total} templates exported, "
               f"{result.failed} failed.</p>\n")
        for error in result.errors:
            yield f"<p>Template {html.escape(str(error.item_id))}: {html.escape(error.message)}</p>\n"
        if result.archive_path:
            archive_name = Path(result.archive_path).name
            yield (f'<p><a href="/download-archive/{html.escape(archive_name)}">'
                   f'Download {html.escape(archive_name)}</a></p>\n')
        elif result.archive_error:
            yield f"<p>Archive could not be created: {html.escape(result.archive_error)}</p>\n"

    yield "</body></html>\n"


def _progress_line(event: ProgressEvent) -> str:
    color = _LEVEL_COLORS.get(event.level, _LEVEL_COLORS['info'])
    percent = f" [{event.percent}%]" if event.total and event.stage in ('item', 'batch') else ''
    return f'<div style="color:{color}">{html.escape(event.message)}{percent}</div>\n'


_STREAM_HEADER = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Bulk Export</title></head>
<body style="font-family: sans-serif">
<h2>Exporting Marketo email templates</h2>
"""

_INDEX_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Marketo Template Exporter</title></head>
<body style="font-family: sans-serif">
<h1>Marketo Template Exporter</h1>
<ul>
  <li><a href="/templates">Browse templates (JSON)</a></li>
  <li><a href="/template-count">Count templates</a></li>
  <li><a href="/all-templates?format=csv">Download template list (CSV)</a></li>
  <li><a href="/bulk-download">Export all templates (ZIP)</a></li>
  <li><a href="/exports">Previous exports</a></li>
</ul>
</body>
</html>
"""
