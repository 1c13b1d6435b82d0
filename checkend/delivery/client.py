"""HTTP client for sending reports to the ingestion API."""

import ssl
from threading import Lock
from typing import Any, Dict, Optional, Union

import httpx
import orjson

from ..config import Settings
from ..reporting.report import Report
from ..version import SDK_NAME, VERSION

INGEST_PATH = "/ingest/v1/errors"
INGESTION_KEY_HEADER = "Checkend-Ingestion-Key"


class Client:
    """
    Ingestion API client.

    One call to ``send`` is one delivery attempt. Failures are logged and
    reported as ``None``; nothing is raised to the caller.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: SDK settings
            transport: Optional httpx transport (tests inject a mock here)
        """
        self.settings = settings
        self.url = f"{settings.endpoint}{INGEST_PATH}"
        self._transport = transport
        self._http: Optional[httpx.Client] = None
        self._http_lock = Lock()

    @property
    def http(self) -> httpx.Client:
        """Get the pooled httpx client, created on first use."""
        with self._http_lock:
            if self._http is None:
                self._http = httpx.Client(
                    timeout=httpx.Timeout(
                        self.settings.timeout, connect=self.settings.open_timeout
                    ),
                    proxy=self.settings.proxy,
                    verify=self._verify(),
                    transport=self._transport,
                )
            return self._http

    def _verify(self) -> Union[bool, ssl.SSLContext]:
        if not self.settings.ssl_verify:
            return False
        if self.settings.ssl_ca_path:
            return ssl.create_default_context(cafile=self.settings.ssl_ca_path)
        return True

    def send(self, report: Report) -> Optional[Dict[str, Any]]:
        """
        Send a report.

        Args:
            report: Report to deliver

        Returns:
            Decoded response body on HTTP 201, otherwise None
        """
        if not self.settings.api_key:
            self.settings.log("error", "Cannot send notice: api_key not configured")
            return None

        try:
            body = report.to_json()
        except (orjson.JSONEncodeError, TypeError) as e:
            self.settings.log("error", f"Failed to encode payload: {e}")
            return None

        try:
            response = self.http.post(
                self.url,
                content=body,
                headers={
                    "Content-Type": "application/json",
                    INGESTION_KEY_HEADER: self.settings.api_key,
                    "User-Agent": f"{SDK_NAME}/{VERSION}",
                    "Content-Length": str(len(body)),
                },
            )
        except Exception as e:
            # httpx.HTTPError, or OSError from a bad CA path
            self.settings.log("error", f"Failed to send notice: {e}")
            return None

        if response.status_code != 201:
            self._handle_http_error(response)
            return None

        try:
            decoded = orjson.loads(response.content)
        except orjson.JSONDecodeError:
            decoded = None

        if not isinstance(decoded, dict):
            self.settings.log("error", "Failed to send notice: could not decode response")
            return None

        self.settings.log("debug", f"Notice sent successfully: {decoded}")
        return decoded

    def _handle_http_error(self, response: httpx.Response) -> None:
        status_code = response.status_code

        if status_code == 401:
            self.settings.log("error", "Authentication failed: invalid API key")
        elif status_code == 422:
            self.settings.log("error", f"Validation error: {response.text}")
        elif status_code == 429:
            self.settings.log("warning", "Rate limited by Checkend API")
        elif status_code >= 500:
            self.settings.log("error", f"Server error: {status_code}")
        else:
            self.settings.log("error", f"HTTP error: {status_code}")

    def close(self) -> None:
        """Close the underlying connection pool."""
        with self._http_lock:
            if self._http is not None:
                self._http.close()
                self._http = None
