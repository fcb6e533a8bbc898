"""
Payload delivery for sysnap.

Posts the encrypted payload to the collector in a single attempt.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import requests

if TYPE_CHECKING:
    from sysnap.config import Config

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    """Result of a delivery attempt."""

    success: bool
    status_code: int | None = None
    duration_ms: float = 0.0


class TransportError(Exception):
    """Raised when the payload could not be delivered."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class Uploader:
    """
    Delivers encrypted snapshots to a remote collector.

    Any response other than 200, and any transport failure, is terminal for
    the run; there are no retries.
    """

    def __init__(self, config: Config):
        self.config = config
        self.session = requests.Session()
        self.session.headers.update(
            {
                "User-Agent": f"sysnap/{self._get_version()}",
                "Content-Type": "text/plain",
            }
        )

    def deliver(self, address: str | None, payload: str) -> UploadResult:
        """
        POST the payload as the full request body.

        Args:
            address: Destination URL.
            payload: Encoded ciphertext envelope.

        Returns:
            UploadResult for the successful delivery.

        Raises:
            TransportError: On a non-200 response or any request failure.
        """
        if not address:
            raise TransportError("No server address configured")

        start_time = time.perf_counter()
        try:
            response = self.session.post(
                address,
                data=payload.encode("ascii"),
                timeout=self.config.upload_timeout,
            )
        except requests.exceptions.Timeout:
            raise TransportError(
                f"Request to {address} timed out after {self.config.upload_timeout}s"
            ) from None
        except requests.exceptions.ConnectionError as e:
            raise TransportError(f"Connection error: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request error: {e}") from e

        duration = (time.perf_counter() - start_time) * 1000

        if response.status_code != 200:
            raise TransportError(
                f"Server returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        logger.info(f"Delivery successful in {duration:.0f}ms")
        return UploadResult(success=True, status_code=response.status_code, duration_ms=duration)

    def test_connection(self) -> bool:
        """
        Test connection to the collector.

        Returns:
            True if server is reachable, False otherwise.
        """
        if not self.config.server_address:
            return False

        try:
            response = self.session.head(
                self.config.server_address,
                timeout=10,
                allow_redirects=True,
            )
            return bool(response.status_code < 500)
        except requests.exceptions.RequestException:
            return False

    def _get_version(self) -> str:
        from sysnap import __version__

        return __version__
