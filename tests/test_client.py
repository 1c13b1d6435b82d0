"""Tests for the ingestion HTTP client."""

import threading

import httpx
import orjson
import pytest
from structlog.testing import capture_logs

from checkend.config import Settings
from checkend.delivery.client import INGESTION_KEY_HEADER, Client
from checkend.reporting.report import Report
from checkend.version import SDK_NAME, VERSION


def make_report(**fields) -> Report:
    fields.setdefault("error_class", "RuntimeError")
    fields.setdefault("message", "boom")
    return Report(**fields)


def make_client(handler, **options):
    options.setdefault("api_key", "test-key")
    options.setdefault("endpoint", "https://ingest.example.com")
    lines = []
    settings = Settings(
        _env_file=None,
        log_function=lambda level, msg: lines.append((level, msg)),
        **options,
    )
    return Client(settings, transport=httpx.MockTransport(handler)), lines


class TestClientRequest:
    """Tests for the outgoing request."""

    def test_posts_to_ingest_endpoint(self):
        """Test URL, method, headers and body."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(201, json={"id": 42})

        client, _ = make_client(handler)
        client.send(make_report(context={"order_id": 7}))

        request = seen["request"]
        body = request.content
        assert request.method == "POST"
        assert str(request.url) == "https://ingest.example.com/ingest/v1/errors"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers[INGESTION_KEY_HEADER] == "test-key"
        assert request.headers["User-Agent"] == f"{SDK_NAME}/{VERSION}"
        assert request.headers["Content-Length"] == str(len(body))

        payload = orjson.loads(body)
        assert payload["error"]["class"] == "RuntimeError"
        assert payload["context"]["order_id"] == 7

    def test_missing_api_key_skips_request(self):
        """Test no request is made without an API key."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(201, json={"id": 1})

        client, lines = make_client(handler, api_key="")

        assert client.send(make_report()) is None
        assert calls == []
        assert lines == [("error", "Cannot send notice: api_key not configured")]


class TestClientResponses:
    """Tests for response classification."""

    def test_created_returns_body(self):
        """Test HTTP 201 returns the decoded JSON object."""
        client, _ = make_client(lambda r: httpx.Response(201, json={"id": 5, "problem_id": 9}))
        assert client.send(make_report()) == {"id": 5, "problem_id": 9}

    def test_ok_is_not_success(self):
        """Test only 201 counts as success."""
        client, lines = make_client(lambda r: httpx.Response(200, json={"id": 5}))

        assert client.send(make_report()) is None
        assert lines == [("error", "HTTP error: 200")]

    @pytest.mark.parametrize(
        "status, level, message",
        [
            (401, "error", "Authentication failed: invalid API key"),
            (429, "warning", "Rate limited by Checkend API"),
            (500, "error", "Server error: 500"),
            (503, "error", "Server error: 503"),
            (404, "error", "HTTP error: 404"),
        ],
    )
    def test_error_statuses(self, status, level, message):
        """Test each failure status is logged and returns None."""
        client, lines = make_client(lambda r: httpx.Response(status))

        assert client.send(make_report()) is None
        assert lines == [(level, message)]

    def test_validation_error_logs_body(self):
        """Test 422 logs the response body."""
        client, lines = make_client(
            lambda r: httpx.Response(422, text='{"error":"class is required"}')
        )

        assert client.send(make_report()) is None
        assert lines == [("error", 'Validation error: {"error":"class is required"}')]

    def test_undecodable_success_body(self):
        """Test a 201 without a JSON object is a failure."""
        client, lines = make_client(lambda r: httpx.Response(201, text="not json"))

        assert client.send(make_report()) is None
        assert lines[0][0] == "error"

    def test_network_error_never_raises(self):
        """Test transport errors are caught and logged."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, lines = make_client(handler)

        assert client.send(make_report()) is None
        assert lines == [("error", "Failed to send notice: connection refused")]

    def test_encoding_failure(self):
        """Test an unserializable payload fails only this attempt."""
        client, lines = make_client(lambda r: httpx.Response(201, json={"id": 1}))
        report = make_report().model_copy(update={"context": {"obj": object()}})

        assert client.send(report) is None
        assert lines[0][0] == "error"
        assert lines[0][1].startswith("Failed to encode payload")

    def test_success_logged_in_debug(self):
        """Test the success line goes through the structlog sink."""
        settings = Settings(_env_file=None, api_key="k", debug=True)
        client = Client(
            settings, transport=httpx.MockTransport(lambda r: httpx.Response(201, json={"id": 1}))
        )

        with capture_logs() as logs:
            client.send(make_report())

        assert logs[0]["log_level"] == "debug"
        assert logs[0]["event"].startswith("Notice sent successfully")


class TestClientConfiguration:
    """Tests for HTTP client settings."""

    def test_verify_disabled(self):
        """Test TLS verification can be switched off."""
        client, _ = make_client(lambda r: httpx.Response(201, json={}), ssl_verify=False)
        assert client._verify() is False

    def test_verify_default(self):
        """Test TLS verification is on by default."""
        client, _ = make_client(lambda r: httpx.Response(201, json={}))
        assert client._verify() is True

    def test_client_reused_and_closed(self):
        """Test the pooled httpx client lifecycle."""
        client, _ = make_client(lambda r: httpx.Response(201, json={}))

        first = client.http
        assert client.http is first

        client.close()
        assert first.is_closed
        assert client.http is not first

    def test_concurrent_first_use_builds_one_pool(self):
        """Test threads racing on first use share one httpx client."""
        client, _ = make_client(lambda r: httpx.Response(201, json={}))
        barrier = threading.Barrier(8)
        seen = []

        def grab():
            barrier.wait()
            seen.append(client.http)

        threads = [threading.Thread(target=grab) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len({id(http) for http in seen}) == 1
        client.close()
