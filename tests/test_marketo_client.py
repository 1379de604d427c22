"""Tests for the Marketo REST client transport and envelope handling."""

import threading
from unittest.mock import MagicMock

import pytest
import requests

from errors import ProviderBusinessError
from marketo_client import MarketoClient
from marketo_fakes import FakeClock, make_response
from models import Token
from token_store import TokenStore

REST_URL = 'https://123-abc-456.mktorest.com/rest'


@pytest.fixture()
def token_store():
    store = MagicMock()
    store.get_token.return_value = 'bearer-1'
    return store


@pytest.fixture()
def client(token_store):
    client = MarketoClient(REST_URL, token_store, max_retries=0)
    client.session.request = MagicMock()
    return client


def ok(result, **extra):
    body = {'success': True, 'requestId': 'abc#123', 'result': result}
    body.update(extra)
    return make_response(200, body)


def failure(code, message):
    return make_response(200, {'success': False, 'errors': [{'code': code, 'message': message}]})


class TestRequests:
    def test_bearer_header_and_url(self, client):
        client.session.request.return_value = ok([])

        client.list_emails(max_return=200, offset=0)

        args, kwargs = client.session.request.call_args
        assert args == ('GET', f'{REST_URL}/asset/v1/emails.json')
        assert kwargs['headers']['Authorization'] == 'Bearer bearer-1'
        assert kwargs['params'] == {'maxReturn': 200, 'offset': 0}

    def test_token_cursor_replaces_offset(self, client):
        client.session.request.return_value = ok([])

        client.list_emails(max_return=50, offset=400, next_page_token='NEXT')

        params = client.session.request.call_args.kwargs['params']
        assert params == {'maxReturn': 50, 'nextPageToken': 'NEXT'}

    def test_token_requested_for_every_call(self, client, token_store):
        client.session.request.return_value = ok([])

        client.list_emails(offset=0)
        client.list_emails(offset=200)

        assert token_store.get_token.call_count == 2

    def test_http_error_raises(self, client):
        client.session.request.return_value = make_response(500, {'message': 'boom'})

        with pytest.raises(requests.exceptions.HTTPError):
            client.get_email(1)


class TestEnvelope:
    def test_business_error_carries_code_and_message(self, client):
        client.session.request.return_value = failure('709', 'Asset not accessible')

        with pytest.raises(ProviderBusinessError) as exc_info:
            client.get_email_content(42)

        assert exc_info.value.code == '709'
        assert 'Asset not accessible' in str(exc_info.value)

    def test_expired_token_is_refreshed_once(self, client, token_store):
        client.session.request.side_effect = [
            failure('601', 'Access token invalid'),
            ok([{'content': '<p>hi</p>'}])
        ]

        assert client.get_email_full_content(7) == '<p>hi</p>'
        token_store.invalidate.assert_called_once_with('bearer-1')
        assert client.session.request.call_count == 2

    def test_second_token_rejection_is_raised(self, client, token_store):
        client.session.request.side_effect = [
            failure('602', 'Access token expired'),
            failure('602', 'Access token expired')
        ]

        with pytest.raises(ProviderBusinessError) as exc_info:
            client.get_email(7)
        assert exc_info.value.code == '602'
        assert token_store.invalidate.call_count == 1

    def test_missing_email_returns_none(self, client):
        client.session.request.return_value = failure('702', 'No data found')
        assert client.get_email(99) is None

    def test_folder_lookup_passes_type(self, client):
        client.session.request.return_value = ok([{'id': 5, 'name': 'Root'}])

        folder = client.get_folder(5, 'Program')

        assert folder == {'id': 5, 'name': 'Root'}
        assert client.session.request.call_args.kwargs['params'] == {'type': 'Program'}

    def test_full_content_without_content_is_none(self, client):
        client.session.request.return_value = ok([{'id': 7}])
        assert client.get_email_full_content(7) is None

    def test_content_sections_returned(self, client):
        sections = [{'contentType': 'html', 'content': '<p>a</p>'}]
        client.session.request.return_value = ok(sections)
        assert client.get_email_content(7) == sections


class TestConcurrentTokenRejection:
    def test_simultaneous_rejections_share_one_refresh(self):
        clock = FakeClock()
        issued = []

        def authenticate():
            issued.append(1)
            return Token(bearer_value=f'token-{len(issued)}', issued_at=clock(), ttl_seconds=3600)

        authenticator = MagicMock()
        authenticator.authenticate.side_effect = authenticate
        store = TokenStore(authenticator, clock=clock)
        store.get_token()

        workers = 5
        barrier = threading.Barrier(workers, timeout=5)

        def respond(method, url, headers=None, **kwargs):
            if headers['Authorization'] == 'Bearer token-1':
                barrier.wait()
                return failure('602', 'Access token expired')
            return ok([{'content': '<p>hi</p>'}])

        client = MarketoClient(REST_URL, store, max_retries=0)
        client.session.request = MagicMock(side_effect=respond)

        results = []
        threads = [threading.Thread(target=lambda: results.append(client.get_email_full_content(7)))
                   for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert results == ['<p>hi</p>'] * workers
        assert len(issued) == 2
        assert store.refresh_count == 2


class TestFromConfig:
    def test_reads_marketo_and_advanced_sections(self, test_config, token_store):
        test_config['advanced']['request_timeout'] = 12
        client = MarketoClient.from_config(test_config, token_store)

        assert client.rest_url == REST_URL
        assert client.timeout == 12
        assert client.token_store is token_store

    def test_requires_rest_url(self, token_store):
        with pytest.raises(ValueError):
            MarketoClient('', token_store)
