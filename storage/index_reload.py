"""Signals the datasheet index to reload after the store is rewritten."""
import logging

import requests

from processor.errors import IndexReloadFailed

logger = logging.getLogger(__name__)


class HttpIndexReloader:
    """Calls the datasheet server's update endpoint."""

    def __init__(self, url: str, timeout: int = 30):
        self.url = url
        self.timeout = timeout

    def __call__(self) -> None:
        """
        Ask the index to reload from the store.

        Raises:
            IndexReloadFailed: If the endpoint is unreachable or rejects the call
        """
        try:
            response = requests.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise IndexReloadFailed(f"Index reload failed: {e}") from e

        logger.info(f"Index reload acknowledged by {self.url}")


class NullIndexReloader:
    """Used when no index endpoint is configured."""

    def __call__(self) -> None:
        logger.info("No index reload endpoint configured, skipping reload")
