"""Pagination over the Marketo email template listing."""

import logging
import time
from typing import Callable, Iterator, List, Optional

from errors import PaginationLimitExceeded
from models import TemplatePage, TemplateSummary

DEFAULT_PAGE_SIZE = 200
DEFAULT_MAX_PAGES = 50
DEFAULT_PAGE_DELAY = 0.5


class TemplatePaginator:
    """
    Walks the list-templates endpoint until the provider runs out of results.

    The cursor style follows the provider: requests start with an offset,
    and once a response carries ``nextPageToken`` the token is used for
    every following request. Pagination stops on ``moreResult: false``,
    an empty page, a missing token in token mode, a short page in offset
    mode, a repeated token, or the page cap. At the cap a one-item lookahead
    decides whether the listing was actually cut short.
    """

    def __init__(
        self,
        client,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        page_delay: float = DEFAULT_PAGE_DELAY,
        strict: bool = False,
        logger=None
    ):
        """
        Initialize the paginator.

        Args:
            client: MarketoClient (or compatible) exposing ``list_emails``
            page_size: Items requested per page
            max_pages: Page cap for one listing
            page_delay: Seconds to wait between page requests
            strict: Raise PaginationLimitExceeded instead of recording it
            logger: Logger instance (optional)
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")
        if max_pages < 1:
            raise ValueError("max_pages must be positive")

        self.client = client
        self.page_size = page_size
        self.max_pages = max_pages
        self.page_delay = page_delay
        self.strict = strict
        self.logger = logger or logging.getLogger('marketo_template_exporter.paginator')

        self.limit_exceeded: Optional[PaginationLimitExceeded] = None
        self.warnings: List[str] = []
        self.pages_fetched = 0

    def iter_pages(self) -> Iterator[List[TemplateSummary]]:
        """
        Yield one list of templates per provider page, in provider order.

        Raises:
            PaginationLimitExceeded: Only in strict mode
        """
        self.limit_exceeded = None
        self.warnings = []
        self.pages_fetched = 0

        offset = 0
        token: Optional[str] = None
        token_mode = False
        seen_tokens = set()
        items_fetched = 0

        while True:
            if self.pages_fetched > 0 and self.page_delay > 0:
                time.sleep(self.page_delay)

            if token_mode:
                self.logger.debug(f"Fetching templates page {self.pages_fetched + 1} (token cursor)")
                data = self.client.list_emails(max_return=self.page_size, next_page_token=token)
            else:
                self.logger.debug(f"Fetching templates page {self.pages_fetched + 1} (offset {offset})")
                data = self.client.list_emails(max_return=self.page_size, offset=offset)

            page = TemplatePage.from_api(data)
            self.pages_fetched += 1

            if not page.items:
                self.logger.debug("Empty page received, listing complete")
                return

            items_fetched += len(page.items)
            yield page.items

            if page.more_result is False:
                return

            if page.next_page_token:
                if page.next_page_token in seen_tokens:
                    message = (f"Provider repeated continuation token after {items_fetched} "
                               f"templates; stopping pagination")
                    self.logger.warning(message)
                    self.warnings.append(message)
                    return
                seen_tokens.add(page.next_page_token)
                token = page.next_page_token
                token_mode = True
            elif token_mode:
                return
            elif len(page.items) < self.page_size:
                return
            else:
                offset += self.page_size

            if self.pages_fetched >= self.max_pages:
                if self._has_more(token if token_mode else None, offset):
                    self._record_limit(items_fetched)
                else:
                    self.logger.debug("Page cap reached exactly at the end of the collection")
                return

    def list_all(self, progress_callback: Optional[Callable[[int], None]] = None) -> List[TemplateSummary]:
        """
        Fetch the full template collection.

        Args:
            progress_callback: Called with the running total after each page

        Returns:
            Templates in provider order
        """
        templates: List[TemplateSummary] = []

        for items in self.iter_pages():
            templates.extend(items)
            self.logger.info(f"Fetched {len(items)} templates (total so far: {len(templates)})")
            if progress_callback:
                progress_callback(len(templates))

        self.logger.info(f"Listing complete: {len(templates)} templates in {self.pages_fetched} page(s)")
        return templates

    def count(self) -> int:
        """Count templates by walking every page without keeping them."""
        total = 0
        for items in self.iter_pages():
            total += len(items)
        return total

    def _has_more(self, token: Optional[str], offset: int) -> bool:
        """Ask for a single item past the page cap to tell a full listing from a truncated one."""
        if self.page_delay > 0:
            time.sleep(self.page_delay)
        if token:
            data = self.client.list_emails(max_return=1, next_page_token=token)
        else:
            data = self.client.list_emails(max_return=1, offset=offset)
        return bool(TemplatePage.from_api(data).items)

    def _record_limit(self, items_fetched: int) -> None:
        error = PaginationLimitExceeded(self.max_pages, items_fetched)
        if self.strict:
            raise error
        self.limit_exceeded = error
        self.warnings.append(str(error))
        self.logger.warning(str(error))
