"""Fetchers package for retrieving Marketo email templates, content and folders."""

from .template_paginator import TemplatePaginator
from .content_fetcher import (
    ContentFetcher,
    FullContentStrategy,
    SectionsStrategy,
    flatten_sections
)
from .folder_resolver import FolderPathResolver

__all__ = [
    'TemplatePaginator',
    'ContentFetcher',
    'FullContentStrategy',
    'SectionsStrategy',
    'flatten_sections',
    'FolderPathResolver'
]
