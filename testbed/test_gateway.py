import io
import json
import threading
import urllib.error

import pytest

from src.structurify.errors import ApiError, ParsingError
from src.structurify.gateway import CancellationToken, GroqJSONClient, extract_json_text


class _FakeResponse:
    def __init__(self, body: str):
        self._body = body if isinstance(body, bytes) else body.encode("utf-8")

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def _envelope(content):
    return json.dumps({"choices": [{"message": {"role": "assistant", "content": content}}]})


class _RecordingUrlopen:
    def __init__(self, body: str = "", error: Exception = None):
        self.body = body
        self.error = error
        self.requests = []

    def __call__(self, request, timeout=None):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return _FakeResponse(self.body)


def test_missing_api_key_raises_before_any_request(monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    urlopen = _RecordingUrlopen(_envelope("{}"))
    client = GroqJSONClient(api_key="", urlopen=urlopen)
    assert client.is_enabled() is False
    with pytest.raises(ApiError, match="API key not found"):
        client.generate_plan("def f(): pass", "Flowchart")
    assert urlopen.requests == []


def test_generate_plan_sends_json_mode_payload_and_returns_json_text():
    urlopen = _RecordingUrlopen(_envelope('{"nodes": [], "edges": []}'))
    client = GroqJSONClient(api_key="k", model="test-model", base_url="http://llm.test/v1", urlopen=urlopen)
    text = client.generate_plan("print(1)", "Sequence", instruction_template="SYSTEM")

    assert text == '{"nodes": [], "edges": []}'
    request = urlopen.requests[0]
    assert request.full_url == "http://llm.test/v1"
    assert request.get_header("Authorization") == "Bearer k"
    payload = json.loads(request.data.decode("utf-8"))
    assert payload["model"] == "test-model"
    assert payload["response_format"] == {"type": "json_object"}
    assert payload["messages"][0] == {"role": "system", "content": "SYSTEM"}
    assert "print(1)" in payload["messages"][1]["content"]


def test_json_mode_can_be_disabled():
    urlopen = _RecordingUrlopen(_envelope("{}"))
    GroqJSONClient(api_key="k", json_mode=False, urlopen=urlopen).generate_plan("x", "Class")
    payload = json.loads(urlopen.requests[0].data.decode("utf-8"))
    assert "response_format" not in payload
    assert "Class Diagram" in payload["messages"][0]["content"]


def test_extract_json_text_handles_fences_and_prose():
    assert extract_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert extract_json_text('Here you go: {"a": {"b": 2}} thanks') == '{"a": {"b": 2}}'
    with pytest.raises(ParsingError):
        extract_json_text("no json here")


def test_unauthorized_response_maps_to_api_error():
    error = urllib.error.HTTPError(
        "http://llm.test", 401, "Unauthorized", {}, io.BytesIO(b'{"error": {"message": "bad key"}}')
    )
    client = GroqJSONClient(api_key="k", urlopen=_RecordingUrlopen(error=error))
    with pytest.raises(ApiError, match="missing or invalid"):
        client.generate_plan("x", "ER")


def test_server_error_includes_status_and_message():
    error = urllib.error.HTTPError(
        "http://llm.test", 500, "Server Error", {}, io.BytesIO(b'{"error": {"message": "overloaded"}}')
    )
    client = GroqJSONClient(api_key="k", urlopen=_RecordingUrlopen(error=error))
    with pytest.raises(ApiError, match=r"\(500\): overloaded"):
        client.generate_plan("x", "ER")


def test_network_failure_maps_to_api_error():
    client = GroqJSONClient(api_key="k", urlopen=_RecordingUrlopen(error=urllib.error.URLError("down")))
    with pytest.raises(ApiError, match="Network error"):
        client.generate_plan("x", "Flowchart")


def test_empty_or_malformed_envelope():
    client = GroqJSONClient(api_key="k", urlopen=_RecordingUrlopen(_envelope("   ")))
    with pytest.raises(ParsingError, match="empty response"):
        client.generate_plan("x", "Flowchart")

    client = GroqJSONClient(api_key="k", urlopen=_RecordingUrlopen('{"choices": []}'))
    with pytest.raises(ApiError, match="unexpected response"):
        client.generate_plan("x", "Flowchart")


def test_non_utf8_body_maps_to_api_error():
    client = GroqJSONClient(api_key="k", urlopen=_RecordingUrlopen(b'\xff\xfe{"choices": []}'))
    with pytest.raises(ApiError, match="not UTF-8"):
        client.generate_plan("x", "Flowchart")


def test_already_cancelled_token_skips_request():
    urlopen = _RecordingUrlopen(_envelope("{}"))
    token = CancellationToken()
    token.cancel()
    assert GroqJSONClient(api_key="k", urlopen=urlopen).generate_plan("x", "Flowchart", cancellation=token) == ""
    assert urlopen.requests == []


def test_cancellation_during_request_returns_empty_text():
    release = threading.Event()
    started = threading.Event()

    def blocking_urlopen(request, timeout=None):
        started.set()
        release.wait(timeout=5)
        return _FakeResponse(_envelope("{}"))

    token = CancellationToken()
    client = GroqJSONClient(api_key="k", poll_interval=0.01, urlopen=blocking_urlopen)

    def cancel_when_started():
        started.wait(timeout=5)
        token.cancel()

    canceller = threading.Thread(target=cancel_when_started)
    canceller.start()
    try:
        assert client.generate_plan("x", "Flowchart", cancellation=token) == ""
    finally:
        release.set()
        canceller.join(timeout=5)


def test_request_completes_when_token_never_fires():
    client = GroqJSONClient(api_key="k", poll_interval=0.01, urlopen=_RecordingUrlopen(_envelope('{"x": 1}')))
    assert client.generate_plan("x", "Flowchart", cancellation=CancellationToken()) == '{"x": 1}'
