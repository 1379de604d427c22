"""Tests for template list pagination."""

import pytest

from errors import PaginationLimitExceeded
from fetchers.template_paginator import TemplatePaginator
from marketo_fakes import FakeMarketoClient, make_template


def templates(count):
    return [make_template(i) for i in range(1, count + 1)]


class TestOffsetCursor:
    def test_collects_every_page_in_order(self):
        client = FakeMarketoClient(templates(437))
        paginator = TemplatePaginator(client, page_size=200, page_delay=0)

        result = paginator.list_all()

        assert [t.id for t in result] == list(range(1, 438))
        assert [call['offset'] for call in client.list_calls] == [0, 200, 400]
        assert paginator.limit_exceeded is None

    def test_exact_multiple_ends_on_empty_page(self):
        client = FakeMarketoClient(templates(400))
        paginator = TemplatePaginator(client, page_size=200, page_delay=0)

        assert len(paginator.list_all()) == 400
        assert len(client.list_calls) == 3

    def test_empty_collection(self):
        client = FakeMarketoClient([])
        paginator = TemplatePaginator(client, page_delay=0)

        assert paginator.list_all() == []
        assert len(client.list_calls) == 1

    def test_progress_callback_gets_running_total(self):
        client = FakeMarketoClient(templates(450))
        paginator = TemplatePaginator(client, page_size=200, page_delay=0)
        totals = []

        paginator.list_all(progress_callback=totals.append)

        assert totals == [200, 400, 450]


class TestTokenCursor:
    def test_follows_next_page_token(self):
        client = FakeMarketoClient(templates(437), cursor='token')
        paginator = TemplatePaginator(client, page_size=200, page_delay=0)

        result = paginator.list_all()

        assert len(result) == 437
        assert [call['next_page_token'] for call in client.list_calls] == [None, 'tok-200', 'tok-400']

    def test_more_result_false_stops(self):
        client = FakeMarketoClient(templates(10))
        client.list_emails = lambda **kwargs: {
            'success': True, 'result': client.templates[:5], 'moreResult': False
        }
        paginator = TemplatePaginator(client, page_size=5, page_delay=0)

        assert len(paginator.list_all()) == 5

    def test_repeated_token_stops_with_warning(self):
        calls = []

        class StuckClient:
            def list_emails(self, **kwargs):
                calls.append(kwargs)
                return {'success': True, 'result': [make_template(len(calls))], 'nextPageToken': 'SAME'}

        paginator = TemplatePaginator(StuckClient(), page_size=1, page_delay=0)

        result = paginator.list_all()

        assert len(result) == 2
        assert len(calls) == 2
        assert paginator.warnings and 'repeated' in paginator.warnings[0]


class TestPageCap:
    def test_cap_records_truncation(self):
        client = FakeMarketoClient(templates(30))
        paginator = TemplatePaginator(client, page_size=5, max_pages=3, page_delay=0)

        result = paginator.list_all()

        assert len(result) == 15
        assert isinstance(paginator.limit_exceeded, PaginationLimitExceeded)
        assert 'Reached maximum page limit (3) after 15 templates' in paginator.warnings[0]

    def test_cap_not_reported_when_collection_ends(self):
        client = FakeMarketoClient(templates(12))
        paginator = TemplatePaginator(client, page_size=5, max_pages=3, page_delay=0)

        assert len(paginator.list_all()) == 12
        assert paginator.limit_exceeded is None

    def test_collection_ending_exactly_at_cap_is_complete(self):
        client = FakeMarketoClient(templates(15))
        paginator = TemplatePaginator(client, page_size=5, max_pages=3, page_delay=0)

        assert len(paginator.list_all()) == 15
        assert paginator.limit_exceeded is None
        assert paginator.warnings == []
        assert client.list_calls[-1] == {'max_return': 1, 'offset': 15, 'next_page_token': None}

    def test_token_cursor_lookahead_detects_more(self):
        client = FakeMarketoClient(templates(16), cursor='token')
        paginator = TemplatePaginator(client, page_size=5, max_pages=3, page_delay=0)

        assert len(paginator.list_all()) == 15
        assert isinstance(paginator.limit_exceeded, PaginationLimitExceeded)
        assert client.list_calls[-1]['next_page_token'] == 'tok-15'

    def test_strict_mode_raises(self):
        client = FakeMarketoClient(templates(30))
        paginator = TemplatePaginator(client, page_size=5, max_pages=2, page_delay=0, strict=True)

        with pytest.raises(PaginationLimitExceeded):
            paginator.list_all()


def test_count_walks_all_pages():
    client = FakeMarketoClient(templates(205))
    paginator = TemplatePaginator(client, page_size=100, page_delay=0)

    assert paginator.count() == 205


def test_rejects_invalid_page_size():
    with pytest.raises(ValueError):
        TemplatePaginator(FakeMarketoClient(), page_size=0)
