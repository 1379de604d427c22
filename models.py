"""Data models for the Marketo template export pipeline."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger('marketo_template_exporter')


def _text_value(value: Any) -> Optional[str]:
    """Normalize a Marketo field that may be a plain value or a {type, value} object."""
    if value is None:
        return None
    if isinstance(value, dict):
        inner = value.get('value')
        return str(inner) if inner is not None else None
    return str(value)


@dataclass(frozen=True)
class Credential:
    """Client-credentials tuple supplied at startup."""

    client_id: str
    client_secret: str = field(repr=False)
    identity_url: str


@dataclass(frozen=True)
class Token:
    """Bearer token with its issue time and time-to-live."""

    bearer_value: str = field(repr=False)
    issued_at: float
    ttl_seconds: float

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.ttl_seconds

    def is_usable(self, now: float, refresh_skew: float) -> bool:
        """Check whether the token can still be presented at ``now``."""
        return now < self.expires_at - refresh_skew


@dataclass(frozen=True)
class FolderRef:
    """Reference from a template to the folder that contains it."""

    id: Any
    name: Optional[str] = None
    type: Optional[str] = None

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> Optional['FolderRef']:
        """Build from either ``{id, name, type}`` or ``{value, folderName, type}``."""
        if not data or not isinstance(data, dict):
            return None
        folder_id = data.get('id', data.get('value'))
        if folder_id is None:
            return None
        return cls(
            id=folder_id,
            name=data.get('name', data.get('folderName')),
            type=data.get('type')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'type': self.type}


@dataclass(frozen=True)
class TemplateSummary:
    """One email template as returned by the list endpoint."""

    id: Any
    name: str
    status: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    folder: Optional[FolderRef] = None
    subject: Optional[str] = None
    from_name: Optional[str] = None
    from_email: Optional[str] = None
    description: Optional[str] = None
    reply_to: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'TemplateSummary':
        """Normalize a raw email asset dictionary."""
        return cls(
            id=data.get('id'),
            name=data.get('name') or '',
            status=data.get('status'),
            created_at=data.get('createdAt'),
            updated_at=data.get('updatedAt'),
            folder=FolderRef.from_api(data.get('folder')),
            subject=_text_value(data.get('subject')),
            from_name=_text_value(data.get('fromName')),
            from_email=_text_value(data.get('fromEmail')),
            description=data.get('description'),
            reply_to=_text_value(data.get('replyEmail', data.get('replyTo'))),
            raw=dict(data)
        )

    def to_metadata(self) -> Dict[str, Any]:
        """Serialize to the camelCase layout written to ``metadata.json``."""
        return {
            'id': self.id,
            'name': self.name,
            'status': self.status,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'folder': self.folder.to_dict() if self.folder else None,
            'subject': self.subject,
            'fromName': self.from_name,
            'fromEmail': self.from_email,
            'description': self.description,
            'replyTo': self.reply_to
        }


@dataclass
class TemplatePage:
    """Normalized list-templates response, whichever cursor style the provider used."""

    items: List[TemplateSummary] = field(default_factory=list)
    next_page_token: Optional[str] = None
    more_result: Optional[bool] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'TemplatePage':
        results = data.get('result') or []
        return cls(
            items=[TemplateSummary.from_api(item) for item in results],
            next_page_token=data.get('nextPageToken') or None,
            more_result=data.get('moreResult')
        )


@dataclass
class ContentSection:
    """A unit of structured template content."""

    content_type: Optional[str] = None
    content: Optional[str] = None
    values: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'ContentSection':
        raw_values = data.get('value')
        values = [v for v in raw_values if isinstance(v, dict)] if isinstance(raw_values, list) else []
        content = data.get('content')
        return cls(
            content_type=data.get('contentType'),
            content=content if isinstance(content, str) else None,
            values=values
        )

    def html_fragments(self) -> List[str]:
        """Return the HTML fragments carried by this section, in order."""
        fragments = []
        for item in self.values:
            item_type = item.get('type')
            item_value = item.get('value')
            if isinstance(item_type, str) and item_type.upper() == 'HTML' and item_value:
                fragments.append(str(item_value))
        if isinstance(self.content_type, str) and self.content_type.lower() == 'html' and self.content:
            fragments.append(self.content)
        return fragments


@dataclass(frozen=True)
class FolderNode:
    """One folder in a root-first folder path."""

    id: Any
    name: str
    type: Optional[str] = None
    parent_id: Any = None
    parent_type: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'FolderNode':
        parent = data.get('parent') or {}
        folder_id = data.get('id')
        folder_type = None
        folder_id_obj = data.get('folderId')
        if isinstance(folder_id_obj, dict):
            folder_id = folder_id_obj.get('id', folder_id)
            folder_type = folder_id_obj.get('type')
        return cls(
            id=folder_id,
            name=data.get('name') or '',
            type=folder_type or data.get('type'),
            parent_id=parent.get('id') if isinstance(parent, dict) else None,
            parent_type=parent.get('type') if isinstance(parent, dict) else None
        )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass
class ExportError:
    """A per-item failure recorded during a bulk export."""

    item_id: Any
    message: str
    item_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'itemId': self.item_id, 'itemName': self.item_name, 'message': self.message}


@dataclass
class ExportResult:
    """Running and final report of a bulk export."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[ExportError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    output_dir: Optional[str] = None
    archive_path: Optional[str] = None
    archive_error: Optional[str] = None
    truncated: bool = False
    duration_seconds: float = 0.0
    # Listing the export ran against, kept for CSV output
    templates: List[TemplateSummary] = field(default_factory=list, repr=False)

    @property
    def processed(self) -> int:
        return self.successful + self.failed

    @property
    def percent_complete(self) -> int:
        if self.total <= 0:
            return 100
        return round(self.processed / self.total * 100)

    def record_success(self) -> None:
        self.successful += 1

    def record_failure(self, item_id: Any, message: str, item_name: Optional[str] = None) -> None:
        self.failed += 1
        self.errors.append(ExportError(item_id=item_id, message=message, item_name=item_name))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'successful': self.successful,
            'failed': self.failed,
            'processed': self.processed,
            'errors': [error.to_dict() for error in self.errors],
            'warnings': list(self.warnings),
            'outputDir': self.output_dir,
            'archivePath': self.archive_path,
            'archiveError': self.archive_error,
            'truncated': self.truncated,
            'durationSeconds': self.duration_seconds
        }


@dataclass
class ProgressEvent:
    """Incremental progress notification emitted by the orchestrator."""

    stage: str
    message: str
    processed: int = 0
    total: int = 0
    successful: int = 0
    failed: int = 0
    item_id: Any = None
    level: str = 'info'

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        return round(self.processed / self.total * 100)
