import io

import pytest
import requests
from requests.adapters import BaseAdapter

from mtproxxy.fetch import FetchError, Fetcher


class CannedAdapter(BaseAdapter):
    """Answers every request from memory; records the headers it saw."""

    def __init__(self, status=200, body=b"", exc=None):
        super().__init__()
        self.status = status
        self.body = body
        self.exc = exc
        self.seen = []

    def send(self, request, **kwargs):
        self.seen.append((request, kwargs))
        if self.exc is not None:
            raise self.exc
        resp = requests.Response()
        resp.status_code = self.status
        resp.raw = io.BytesIO(self.body)
        resp.url = request.url
        resp.request = request
        return resp

    def close(self):
        pass


def _fetcher(adapter, **kwargs):
    f = Fetcher(user_agents=["agent-a", "agent-b"], **kwargs)
    sess = f._session()
    sess.mount("http://", adapter)
    sess.mount("https://", adapter)
    return f


def test_fetch_returns_body_and_rotates_identity():
    adapter = CannedAdapter(body=b"Server: 1.2.3.4")
    res = _fetcher(adapter).fetch("https://src.example/list.txt")
    assert res.status == 200
    assert res.body == b"Server: 1.2.3.4"
    assert res.user_agent in ("agent-a", "agent-b")
    request, kwargs = adapter.seen[0]
    assert request.headers["User-Agent"] == res.user_agent
    assert kwargs["verify"] is False


def test_non_200_is_an_error():
    with pytest.raises(FetchError) as info:
        _fetcher(CannedAdapter(status=503, body=b"busy")).fetch("https://src.example/list.txt")
    assert info.value.status == 503
    assert info.value.reason == "http_status_503"


def test_empty_body_is_an_error():
    with pytest.raises(FetchError) as info:
        _fetcher(CannedAdapter(body=b"")).fetch("https://src.example/list.txt")
    assert info.value.reason == "empty_body"


def test_oversized_body_is_an_error():
    with pytest.raises(FetchError) as info:
        _fetcher(CannedAdapter(body=b"x" * 5000), max_body_bytes=1000, chunk_size=1024).fetch(
            "https://src.example/list.txt"
        )
    assert info.value.reason.startswith("body_too_large")


def test_transport_failure_is_wrapped():
    adapter = CannedAdapter(exc=requests.ConnectionError("refused"))
    with pytest.raises(FetchError) as info:
        _fetcher(adapter).fetch("https://src.example/list.txt")
    assert info.value.reason == "transport:ConnectionError"


def test_explicit_user_agent_and_verification_flag():
    adapter = CannedAdapter(body=b"ok")
    res = _fetcher(adapter, verify_ssl=True).fetch("https://src.example/list.txt", user_agent="custom")
    assert res.user_agent == "custom"
    assert adapter.seen[0][1]["verify"] is not False


def test_fetcher_without_pool_uses_default_agent():
    assert Fetcher().random_user_agent().startswith("Mozilla/5.0")
