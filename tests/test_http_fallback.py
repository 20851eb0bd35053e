import pytest
import requests

from regionpoi.http import (
    CancelToken,
    FetchCancelled,
    HttpClient,
    NonRetryableError,
    RequestMetrics,
    SearchError,
)

ENDPOINTS = ["https://a.example/api", "https://b.example/api", "https://c.example/api"]


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None, bad_json=False):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.headers = headers or {}
        self._bad_json = bad_json

    def json(self):
        if self._bad_json:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    """Returns queued responses (or raises queued exceptions) per URL."""

    def __init__(self, responses_by_url):
        self.responses_by_url = {k: list(v) for k, v in responses_by_url.items()}
        self.calls = []
        self.headers = {}

    def _next(self, url):
        self.calls.append(url)
        queue = self.responses_by_url.get(url) or [FakeResponse(404)]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, params=None, timeout=None):
        return self._next(url)

    def post(self, url, data=None, timeout=None):
        return self._next(url)


def make_http_client(responses_by_url, metrics=None):
    client = HttpClient(timeout=1, backoff_base=0.0, backoff_max=0.0, metrics=metrics)
    client.session = FakeSession(responses_by_url)
    return client


def test_first_endpoint_success_makes_one_call():
    client = make_http_client({ENDPOINTS[0]: [FakeResponse(200, {"ok": 1})]})
    assert client.get_json(ENDPOINTS, {"q": 1}) == {"ok": 1}
    assert client.session.calls == [ENDPOINTS[0]]


def test_server_error_falls_back_to_next_endpoint():
    metrics = RequestMetrics()
    client = make_http_client(
        {
            ENDPOINTS[0]: [FakeResponse(503)],
            ENDPOINTS[1]: [FakeResponse(200, {"elements": []})],
        },
        metrics=metrics,
    )
    assert client.post_form(ENDPOINTS, {"data": "q"}) == {"elements": []}
    assert client.session.calls == ENDPOINTS[:2]
    assert metrics.network_requests == 2
    assert metrics.fallbacks == 1
    assert metrics.failed_requests == 0


@pytest.mark.parametrize("status", [501, 505, 507, 520])
def test_any_server_error_falls_back(status):
    client = make_http_client(
        {
            ENDPOINTS[0]: [FakeResponse(status)],
            ENDPOINTS[1]: [FakeResponse(200, {"ok": 3})],
        }
    )
    assert client.get_json(ENDPOINTS, {}) == {"ok": 3}
    assert client.session.calls == ENDPOINTS[:2]


def test_rate_limit_honours_retry_after_then_falls_back():
    client = make_http_client(
        {
            ENDPOINTS[0]: [FakeResponse(429, headers={"Retry-After": "0"})],
            ENDPOINTS[1]: [FakeResponse(200, {"ok": 2})],
        }
    )
    assert client.get_json(ENDPOINTS, {}) == {"ok": 2}


def test_client_error_stops_without_trying_mirrors():
    metrics = RequestMetrics()
    client = make_http_client(
        {ENDPOINTS[0]: [FakeResponse(400)], ENDPOINTS[1]: [FakeResponse(200, {"ok": 1})]},
        metrics=metrics,
    )
    with pytest.raises(NonRetryableError) as excinfo:
        client.get_json(ENDPOINTS, {})
    assert excinfo.value.status == 400
    assert client.session.calls == [ENDPOINTS[0]]
    assert metrics.failed_requests == 1


def test_never_more_attempts_than_endpoints():
    client = make_http_client({url: [FakeResponse(500)] for url in ENDPOINTS})
    with pytest.raises(SearchError) as excinfo:
        client.get_json(ENDPOINTS, {})
    assert not isinstance(excinfo.value, NonRetryableError)
    assert excinfo.value.status == 500
    assert client.session.calls == ENDPOINTS


def test_network_error_and_bad_json_are_transient():
    client = make_http_client(
        {
            ENDPOINTS[0]: [requests.ConnectionError("boom")],
            ENDPOINTS[1]: [FakeResponse(200, bad_json=True)],
            ENDPOINTS[2]: [FakeResponse(200, {"ok": 3})],
        }
    )
    assert client.get_json(ENDPOINTS, {}) == {"ok": 3}
    assert client.session.calls == ENDPOINTS


def test_cancelled_token_prevents_request():
    client = make_http_client({ENDPOINTS[0]: [FakeResponse(200, {"ok": 1})]})
    token = CancelToken()
    token.cancel()
    with pytest.raises(FetchCancelled):
        client.get_json(ENDPOINTS, {}, token)
    assert client.session.calls == []


def test_cancel_during_request_discards_response():
    token = CancelToken()

    class CancellingSession(FakeSession):
        def get(self, url, params=None, timeout=None):
            token.cancel()
            return super().get(url, params=params, timeout=timeout)

    client = HttpClient(timeout=1, backoff_base=0.0, backoff_max=0.0)
    client.session = CancellingSession({ENDPOINTS[0]: [FakeResponse(200, {"ok": 1})]})
    with pytest.raises(FetchCancelled):
        client.get_json(ENDPOINTS, {}, token)


def test_empty_endpoint_list_rejected():
    client = make_http_client({})
    with pytest.raises(ValueError):
        client.get_json([], {})
