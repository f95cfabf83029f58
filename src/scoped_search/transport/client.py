"""Thin Elasticsearch transport for built queries.

Query building never touches the network; this module only sends the bodies
produced by the builders and the paginator.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

from elasticsearch import ConnectionError as ESConnectionError
from elasticsearch import ConnectionTimeout, Elasticsearch, NotFoundError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import ElasticsearchConfig
from ..errors import InvalidArgumentError, ResourceNotFoundError
from ..pagination.keyset import KeysetPaginator

logger = logging.getLogger(__name__)


def create_client(config: ElasticsearchConfig) -> Elasticsearch:
    """Create an Elasticsearch client from configuration."""
    kwargs: Dict[str, Any] = {
        "request_timeout": config.timeout,
        "verify_certs": config.verify_certs,
    }
    if config.api_key:
        kwargs["api_key"] = config.api_key
    return Elasticsearch(config.url, **kwargs)


class SearchClient:
    """Sends search bodies to Elasticsearch.

    Connection failures and timeouts are retried with exponential backoff;
    every other API error propagates unchanged.
    """

    def __init__(self, client: Elasticsearch):
        self.client = client

    @classmethod
    def from_config(cls, config: ElasticsearchConfig) -> "SearchClient":
        return cls(create_client(config))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((ESConnectionError, ConnectionTimeout)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def search(self, index: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Run one search request.

        Args:
            index: Index name
            body: Request body as built by a builder or paginator

        Returns:
            The response as a plain dict

        Raises:
            ResourceNotFoundError: If the index doesn't exist
            elasticsearch.ConnectionError: After 3 failed attempts
        """
        logger.debug(f"Searching {index} with keys {sorted(body)}")
        try:
            response = self.client.search(index=index, body=body)
        except NotFoundError as e:
            raise ResourceNotFoundError(f"Index not found: {index}") from e
        return dict(response)

    def health_check(self) -> bool:
        """Whether the cluster answers a ping."""
        try:
            return bool(self.client.ping())
        except Exception as e:
            logger.debug(f"Health check failed: {e}")
            return False


def hits_of(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    return list(response.get("hits", {}).get("hits", []))


def iterate_pages(client: SearchClient, index: str, paginator: KeysetPaginator, page_size: int,
                  max_pages: Optional[int] = None) -> Iterator[List[Dict[str, Any]]]:
    """Walk a sorted result set page by page, following the paginator's cursors.

    Stops on a short page or after ``max_pages`` pages.

    Raises:
        InvalidArgumentError: If page_size is less than 1
    """
    if page_size < 1:
        raise InvalidArgumentError(f"page_size must be at least 1, got {page_size}")

    pages = 0
    while max_pages is None or pages < max_pages:
        hits = hits_of(client.search(index, paginator.first(page_size)))
        pages += 1
        if hits:
            yield hits
        if len(hits) < page_size:
            return
        paginator.after_cursor(paginator.cursor_for(hits[-1]))
