"""Wiring of the export object graph from configuration."""

from dataclasses import dataclass
from typing import Any, Dict

from exporters.template_writer import TemplateWriter
from fetchers.content_fetcher import ContentFetcher
from fetchers.folder_resolver import FolderPathResolver
from fetchers.template_paginator import TemplatePaginator
from marketo_client import MarketoClient
from token_store import TokenStore
from .export_orchestrator import ExportOrchestrator


@dataclass
class ExportComponents:
    """Everything one export session needs, sharing a single TokenStore."""

    config: Dict[str, Any]
    token_store: TokenStore
    client: MarketoClient
    content_fetcher: ContentFetcher
    folder_resolver: FolderPathResolver
    writer: TemplateWriter

    def new_paginator(self) -> TemplatePaginator:
        """Fresh paginator; each listing keeps its own truncation state."""
        export_config = self.config.get('export', {})
        return TemplatePaginator(
            self.client,
            page_size=export_config.get('page_size', 200),
            max_pages=export_config.get('max_pages', 50),
            page_delay=export_config.get('page_delay', 0.5)
        )

    def new_orchestrator(self) -> ExportOrchestrator:
        return ExportOrchestrator.from_config(self.config, self.new_paginator(), self.writer)


def build_components(config: Dict[str, Any]) -> ExportComponents:
    """
    Build the client, fetchers and writer for a validated configuration.

    Args:
        config: Configuration dictionary (see config_loader.DEFAULT_CONFIG)

    Returns:
        ExportComponents instance
    """
    export_config = config.get('export', {})

    token_store = TokenStore.from_config(config)
    client = MarketoClient.from_config(config, token_store)
    content_fetcher = ContentFetcher(
        client,
        separator=export_config.get('section_separator', '\n\n')
    )
    folder_resolver = FolderPathResolver(client)
    writer = TemplateWriter(
        content_fetcher,
        folder_resolver,
        preview_placeholders=export_config.get('preview_placeholders', True),
        write_text_metadata=export_config.get('write_text_metadata', True),
        require_content=export_config.get('require_content', False)
    )

    return ExportComponents(
        config=config,
        token_store=token_store,
        client=client,
        content_fetcher=content_fetcher,
        folder_resolver=folder_resolver,
        writer=writer
    )


__all__ = ['ExportComponents', 'build_components']
