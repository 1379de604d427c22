"""Shared fixtures for the Marketo template exporter test suite."""

import copy

import pytest

from config_loader import DEFAULT_CONFIG
from exporters.template_writer import TemplateWriter
from fetchers.content_fetcher import ContentFetcher
from fetchers.folder_resolver import FolderPathResolver
from marketo_fakes import FakeMarketoClient, make_template
from orchestrator.components import ExportComponents

MARKETO_ENV = {
    'MARKETO_CLIENT_ID': 'client-id',
    'MARKETO_CLIENT_SECRET': 'client-secret',
    'MARKETO_IDENTITY_URL': 'https://123-abc-456.mktorest.com/identity/oauth/token',
    'MARKETO_REST_URL': 'https://123-abc-456.mktorest.com/rest',
}


@pytest.fixture()
def marketo_env(monkeypatch):
    """Credentials in the environment."""
    for key, value in MARKETO_ENV.items():
        monkeypatch.setenv(key, value)
    return dict(MARKETO_ENV)


@pytest.fixture()
def no_marketo_env(monkeypatch):
    for key in MARKETO_ENV:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def test_config(tmp_path):
    """Resolved configuration with all delays disabled."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config['marketo'].update({
        'client_id': MARKETO_ENV['MARKETO_CLIENT_ID'],
        'client_secret': MARKETO_ENV['MARKETO_CLIENT_SECRET'],
        'identity_url': MARKETO_ENV['MARKETO_IDENTITY_URL'],
        'rest_url': MARKETO_ENV['MARKETO_REST_URL'],
    })
    config['export'].update({
        'output_directory': str(tmp_path / 'marketo-exports'),
        'batch_delay': 0,
        'page_delay': 0,
        'progress_bars': False,
    })
    config['server']['exports_root'] = str(tmp_path / 'exports')
    return config


@pytest.fixture()
def fake_client():
    """Three templates in two folders, all with full HTML content."""
    client = FakeMarketoClient([
        make_template(1001, 'Welcome Email', folder_id=10),
        make_template(1002, 'Monthly Newsletter', folder_id=11),
        make_template(1003, 'Re-engagement: Last Chance!', folder_id=11),
    ])
    for template in client.templates:
        client.full_content[template['id']] = f"<html><head></head><body>Email {template['id']}</body></html>"
    client.folders = {
        1: {'id': 1, 'name': 'Marketing Activities'},
        10: {'id': 10, 'name': 'Onboarding', 'parent': {'id': 1, 'type': 'Folder'}},
        11: {'id': 11, 'name': 'Newsletters', 'parent': {'id': 1, 'type': 'Folder'}},
    }
    return client


@pytest.fixture()
def make_components(test_config):
    """Build ExportComponents around any fake client."""
    def build(client, **writer_options):
        content_fetcher = ContentFetcher(client)
        folder_resolver = FolderPathResolver(client)
        writer = TemplateWriter(content_fetcher, folder_resolver, **writer_options)
        return ExportComponents(
            config=test_config,
            token_store=None,
            client=client,
            content_fetcher=content_fetcher,
            folder_resolver=folder_resolver,
            writer=writer
        )
    return build
