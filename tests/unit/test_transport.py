"""Tests for HttpTransport using httpx.MockTransport (no real network)."""
import httpx
import pytest

from attendance.sync.transport import (
    ConnectionFailed,
    HttpTransport,
    TransportOther,
    TransportTimeout,
)

URL = "https://collector.example/exec"


def make_transport(handler) -> HttpTransport:
    return HttpTransport(client=httpx.Client(transport=httpx.MockTransport(handler)))


def raising(exc_type):
    def handler(request):
        raise exc_type("boom", request=request)
    return handler


class TestHttpTransport:
    def test_returns_status_and_body(self):
        transport = make_transport(lambda request: httpx.Response(200, text='{"result":"success"}'))
        status, body = transport.post(URL, "{}", timeout=5.0)
        assert status == 200
        assert "success" in body

    def test_sends_json_body(self):
        seen = {}

        def handler(request):
            seen["body"] = request.content.decode("utf-8")
            seen["content_type"] = request.headers["content-type"]
            seen["method"] = request.method
            return httpx.Response(200)

        make_transport(handler).post(URL, '{"command": "batch_attendance"}', timeout=5.0)

        assert seen["method"] == "POST"
        assert seen["body"] == '{"command": "batch_attendance"}'
        assert seen["content_type"] == "application/json"

    def test_follows_redirect(self):
        def handler(request):
            if request.url.path == "/exec":
                return httpx.Response(302, headers={"Location": "https://collector.example/result"})
            return httpx.Response(200, text="done")

        status, body = make_transport(handler).post(URL, "{}", timeout=5.0)
        assert status == 200
        assert body == "done"

    def test_error_status_is_returned_not_raised(self):
        transport = make_transport(lambda request: httpx.Response(500, text="oops"))
        assert transport.post(URL, "{}", timeout=5.0) == (500, "oops")

    def test_read_timeout_is_possibly_delivered(self):
        with pytest.raises(TransportTimeout) as exc_info:
            make_transport(raising(httpx.ReadTimeout)).post(URL, "{}", timeout=5.0)
        assert exc_info.value.possibly_delivered is True

    def test_connect_timeout_is_not_delivered(self):
        with pytest.raises(TransportTimeout) as exc_info:
            make_transport(raising(httpx.ConnectTimeout)).post(URL, "{}", timeout=5.0)
        assert exc_info.value.possibly_delivered is False

    def test_connect_error(self):
        with pytest.raises(ConnectionFailed):
            make_transport(raising(httpx.ConnectError)).post(URL, "{}", timeout=5.0)

    def test_other_http_error(self):
        with pytest.raises(TransportOther) as exc_info:
            make_transport(raising(httpx.RemoteProtocolError)).post(URL, "{}", timeout=5.0)
        assert exc_info.value.code == "RemoteProtocolError"

    def test_missing_url(self):
        with pytest.raises(TransportOther) as exc_info:
            HttpTransport().post("", "{}", timeout=5.0)
        assert exc_info.value.code == "no_url"
