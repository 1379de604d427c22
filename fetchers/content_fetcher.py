"""HTML retrieval for a single email template with an ordered fallback chain."""

import logging
from typing import Any, List, Optional, Sequence

from errors import AuthenticationError, ContentUnavailableError, ProviderBusinessError
from models import ContentSection

DEFAULT_SECTION_SEPARATOR = '\n\n'


def flatten_sections(sections: Sequence[ContentSection], separator: str = DEFAULT_SECTION_SEPARATOR) -> Optional[str]:
    """
    Join the HTML carried by content sections into one document.

    For each section, typed values of type HTML come first, then the
    section's own inline content when its contentType is html.

    Returns:
        Joined HTML, or None when no section carries HTML
    """
    fragments: List[str] = []
    for section in sections:
        fragments.extend(section.html_fragments())
    if not fragments:
        return None
    return separator.join(fragments)


class FullContentStrategy:
    """Rendered HTML from the fullContent endpoint."""

    name = 'fullContent'

    def fetch(self, client, template_id: Any) -> Optional[str]:
        return client.get_email_full_content(template_id)


class SectionsStrategy:
    """HTML assembled from the editable content sections."""

    name = 'content sections'

    def __init__(self, separator: str = DEFAULT_SECTION_SEPARATOR):
        self.separator = separator

    def fetch(self, client, template_id: Any) -> Optional[str]:
        raw_sections = client.get_email_content(template_id)
        sections = [ContentSection.from_api(section) for section in raw_sections]
        return flatten_sections(sections, self.separator)


class ContentFetcher:
    """Tries each strategy in order; the first one that yields HTML wins."""

    def __init__(self, client, strategies: Optional[List[Any]] = None,
                 separator: str = DEFAULT_SECTION_SEPARATOR, logger=None):
        """
        Initialize the content fetcher.

        Args:
            client: MarketoClient (or compatible)
            strategies: Ordered strategies (defaults to full content, then sections)
            separator: Joiner for section fragments in the default chain
            logger: Logger instance (optional)
        """
        self.client = client
        self.strategies = strategies or [FullContentStrategy(), SectionsStrategy(separator)]
        self.logger = logger or logging.getLogger('marketo_template_exporter.content')

    def get_html(self, template_id: Any) -> Optional[str]:
        """
        Retrieve the HTML of one template.

        Returns:
            HTML string, or None when every strategy answered without HTML

        Raises:
            AuthenticationError: Immediately, from any strategy
            ProviderBusinessError: When the last strategy hit a provider error
            ContentUnavailableError: When the last strategy failed otherwise
        """
        last_index = len(self.strategies) - 1

        for index, strategy in enumerate(self.strategies):
            try:
                html = strategy.fetch(self.client, template_id)
            except AuthenticationError:
                raise
            except ProviderBusinessError as e:
                if index == last_index:
                    raise
                self.logger.debug(f"{strategy.name} failed for template {template_id}: {e}; trying next")
                continue
            except Exception as e:
                if index == last_index:
                    raise ContentUnavailableError(
                        template_id,
                        f"Could not retrieve content for template {template_id}: {str(e)}"
                    ) from e
                self.logger.debug(f"{strategy.name} failed for template {template_id}: {e}; trying next")
                continue

            if html:
                self.logger.debug(f"Retrieved HTML for template {template_id} via {strategy.name}")
                return html

            self.logger.debug(f"{strategy.name} returned no HTML for template {template_id}")

        return None
