"""In-memory stand-ins for the Marketo REST API used across the test suite."""

import json
import threading
from typing import Any, Dict, List, Optional

import requests

from errors import ProviderBusinessError


def make_template(template_id: int, name: Optional[str] = None, folder_id: Any = None,
                  folder_type: str = 'Folder', **extra) -> Dict[str, Any]:
    """Raw email asset as returned by /asset/v1/emails.json."""
    template = {
        'id': template_id,
        'name': name if name is not None else f'Template {template_id}',
        'status': 'approved',
        'createdAt': '2023-01-15T10:30:00Z+0000',
        'updatedAt': '2023-02-01T08:00:00Z+0000',
        'subject': {'type': 'Text', 'value': f'Subject {template_id}'},
        'fromName': {'type': 'Text', 'value': 'Marketing'},
        'fromEmail': {'type': 'Text', 'value': 'marketing@example.com'},
        'description': '',
    }
    if folder_id is not None:
        template['folder'] = {'type': folder_type, 'value': folder_id, 'folderName': f'Folder {folder_id}'}
    template.update(extra)
    return template


def make_folder(folder_id: int, name: str, parent_id: Optional[int] = None,
                parent_type: str = 'Folder') -> Dict[str, Any]:
    """Raw folder as returned by /asset/v1/folder/{id}.json."""
    folder = {
        'id': folder_id,
        'name': name,
        'folderId': {'id': folder_id, 'type': 'Folder'},
        'folderType': 'Email',
    }
    if parent_id is not None:
        folder['parent'] = {'id': parent_id, 'type': parent_type}
    return folder


def make_response(status_code: int = 200, body: Any = None,
                  url: str = 'https://123-abc-456.mktorest.com/rest') -> requests.Response:
    """Build a requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode('utf-8') if body is not None else b''
    response.headers['Content-Type'] = 'application/json'
    response.encoding = 'utf-8'
    response.url = url
    return response


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMarketoClient:
    """
    Serves templates, content and folders from dictionaries.

    ``cursor`` selects how list_emails paginates: "offset" returns plain
    slices, "token" adds nextPageToken while more results remain.
    Values in ``full_content``, ``sections`` and ``folders`` that are
    exceptions are raised instead of returned.
    """

    def __init__(self, templates: Optional[List[Dict[str, Any]]] = None, cursor: str = 'offset'):
        self.templates = templates or []
        self.cursor = cursor
        self.full_content: Dict[Any, Any] = {}
        self.sections: Dict[Any, Any] = {}
        self.folders: Dict[Any, Any] = {}
        self.list_calls: List[Dict[str, Any]] = []
        self.folder_calls: List[Any] = []
        self.content_calls: List[Any] = []
        self.list_error: Optional[Exception] = None
        self.connection_error: Optional[Exception] = None
        self._lock = threading.Lock()

    def list_emails(self, max_return: int = 200, offset: Optional[int] = None,
                    next_page_token: Optional[str] = None) -> Dict[str, Any]:
        with self._lock:
            self.list_calls.append({'max_return': max_return, 'offset': offset,
                                    'next_page_token': next_page_token})
        if self.list_error is not None:
            raise self.list_error

        start = int(next_page_token.split('-')[1]) if next_page_token else (offset or 0)
        page = self.templates[start:start + max_return]
        data: Dict[str, Any] = {'success': True, 'requestId': 'fake#1'}
        if page:
            data['result'] = page
        else:
            data['warnings'] = ['No assets found for the given search criteria.']

        if self.cursor == 'token' and start + max_return < len(self.templates):
            data['nextPageToken'] = f'tok-{start + max_return}'
        return data

    def get_email(self, email_id: Any) -> Optional[Dict[str, Any]]:
        for template in self.templates:
            if str(template['id']) == str(email_id):
                return template
        return None

    def get_email_full_content(self, email_id: Any) -> Optional[str]:
        with self._lock:
            self.content_calls.append(('full', email_id))
        value = self.full_content.get(email_id)
        if isinstance(value, Exception):
            raise value
        return value

    def get_email_content(self, email_id: Any) -> List[Dict[str, Any]]:
        with self._lock:
            self.content_calls.append(('sections', email_id))
        value = self.sections.get(email_id, [])
        if isinstance(value, Exception):
            raise value
        return value

    def get_folder(self, folder_id: Any, folder_type: str = 'Folder') -> Optional[Dict[str, Any]]:
        with self._lock:
            self.folder_calls.append((folder_id, folder_type))
        value = self.folders.get(folder_id)
        if isinstance(value, Exception):
            raise value
        return value

    def test_connection(self) -> bool:
        if self.connection_error is not None:
            raise self.connection_error
        return True


def business_error(code: str = '709', message: str = 'Asset not accessible') -> ProviderBusinessError:
    return ProviderBusinessError(code, message)
