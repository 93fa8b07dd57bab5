"""
Unit tests for the middleware pipeline and access logging.
"""

import json
import logging

import pytest

from staticserver.http.response import HTTPResponse, HTTPStatus, not_found
from staticserver.middleware import (
    Middleware,
    MiddlewarePipeline,
    LoggingMiddleware,
    RequestLog,
    function_middleware,
)


ACCESS_LOGGER = "staticserver.access"


def ok_handler(request):
    return HTTPResponse(body=b"ok", headers={"Content-Length": "2"})


class Recorder(Middleware):
    """Records the order it was entered in."""

    def __init__(self, label, calls):
        self.label = label
        self.calls = calls

    def __call__(self, request, next):
        self.calls.append(f"{self.label}:in")
        response = next(request)
        self.calls.append(f"{self.label}:out")
        return response


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline."""

    def test_order(self, make_request):
        """Test the first middleware added is outermost."""
        calls = []
        pipeline = MiddlewarePipeline().use(Recorder("a", calls), Recorder("b", calls))

        pipeline.wrap(ok_handler)(make_request("/"))

        assert calls == ["a:in", "b:in", "b:out", "a:out"]

    def test_empty_pipeline(self, make_request):
        """Test an empty pipeline calls the handler directly."""
        dispatch = MiddlewarePipeline().wrap(ok_handler)
        assert dispatch(make_request("/")).body == b"ok"

    def test_short_circuit(self, make_request):
        """Test middleware may answer without calling next."""
        @function_middleware
        def deny(request, next):
            return not_found()

        dispatch = MiddlewarePipeline().add(deny).wrap(ok_handler)

        assert dispatch(make_request("/")).status == HTTPStatus.NOT_FOUND

    def test_len_and_iter(self):
        """Test the pipeline reports its members."""
        first, second = LoggingMiddleware(), LoggingMiddleware()
        pipeline = MiddlewarePipeline().use(first, second)

        assert len(pipeline) == 2
        assert list(pipeline) == [first, second]

    def test_function_middleware_name(self):
        """Test the decorator keeps the function name."""
        @function_middleware
        def add_header(request, next):
            return next(request)

        assert add_header.name == "add_header"


class TestLoggingMiddleware:
    """Tests for LoggingMiddleware."""

    def test_request_id_header(self, make_request):
        """Test responses carry an X-Request-ID."""
        dispatch = MiddlewarePipeline().add(LoggingMiddleware()).wrap(ok_handler)
        response = dispatch(make_request("/"))

        assert len(response.headers["X-Request-ID"]) == 8

    def test_request_id_disabled(self, make_request):
        """Test the header can be turned off."""
        middleware = LoggingMiddleware(include_request_id=False)
        response = middleware(make_request("/"), ok_handler)
        assert "X-Request-ID" not in response.headers

    def test_text_line(self, make_request, caplog):
        """Test the Apache-style access line."""
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER)
        request = make_request("/two words.txt", raw_path="/two%20words.txt",
                               headers={"User-Agent": "pytest"})

        LoggingMiddleware()(request, ok_handler)

        [record] = [r for r in caplog.records if r.name == ACCESS_LOGGER]
        message = record.getMessage()
        assert message.startswith("127.0.0.1 - - [")
        assert '"GET /two%20words.txt" 200 2 ' in message
        assert message.endswith("ms")

    def test_unknown_length_logged_as_dash(self, make_request, caplog):
        """Test streamed bodies without Content-Length log '-'."""
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER)

        LoggingMiddleware()(make_request("/"), lambda request: HTTPResponse())

        [record] = [r for r in caplog.records if r.name == ACCESS_LOGGER]
        assert '" 200 - ' in record.getMessage()

    def test_json_line(self, make_request, caplog):
        """Test the JSON access line."""
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER)

        LoggingMiddleware(log_format="json")(make_request("/hello.txt"), ok_handler)

        [record] = [r for r in caplog.records if r.name == ACCESS_LOGGER]
        entry = json.loads(record.getMessage())
        assert entry["method"] == "GET"
        assert entry["path"] == "/hello.txt"
        assert entry["status_code"] == 200
        assert entry["content_length"] == 2
        assert entry["client_ip"] == "127.0.0.1"

    def test_skip_paths(self, make_request, caplog):
        """Test skipped paths are not logged but still tagged."""
        caplog.set_level(logging.INFO, logger=ACCESS_LOGGER)

        response = LoggingMiddleware(skip_paths=["/favicon.ico"])(
            make_request("/favicon.ico"), ok_handler
        )

        assert not [r for r in caplog.records if r.name == ACCESS_LOGGER]
        assert "X-Request-ID" in response.headers

    def test_log_level(self, make_request, caplog):
        """Test access lines use the configured level."""
        caplog.set_level(logging.DEBUG, logger=ACCESS_LOGGER)

        LoggingMiddleware(log_level=logging.DEBUG)(make_request("/"), ok_handler)

        [record] = [r for r in caplog.records if r.name == ACCESS_LOGGER]
        assert record.levelno == logging.DEBUG

    def test_handler_error_logged_and_raised(self, make_request, caplog):
        """Test a failing handler is logged and the error propagates."""
        caplog.set_level(logging.ERROR, logger=ACCESS_LOGGER)

        def boom(request):
            raise RuntimeError("disk on fire")

        with pytest.raises(RuntimeError):
            LoggingMiddleware()(make_request("/x"), boom)

        assert any("disk on fire" in r.getMessage() for r in caplog.records)


class TestRequestLog:
    """Tests for RequestLog."""

    def _entry(self, **overrides):
        fields = dict(
            request_id="abcd1234", method="GET", path="/a", client_ip="10.0.0.1",
            user_agent="-", status_code=206, content_length=100,
            duration_ms=1.23456, timestamp="16/Oct/2026:10:00:00 +0000",
        )
        fields.update(overrides)
        return RequestLog(**fields)

    def test_to_dict_rounds_duration(self):
        """Test durations are rounded to two places."""
        assert self._entry().to_dict()["duration_ms"] == 1.23

    def test_to_text(self):
        """Test the text rendering."""
        assert self._entry().to_text() == (
            '10.0.0.1 - - [16/Oct/2026:10:00:00 +0000] "GET /a" 206 100 1.23ms'
        )
