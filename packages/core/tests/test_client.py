"""Tests for the chat client against stubbed HTTP transports."""

import json

import httpx
import pytest

from passreview_core.client import ChatClient, extract_content
from passreview_core.errors import (
    ApiError,
    HttpStatusError,
    ReviewError,
    TransportError,
    UnparsableResponseError,
)
from passreview_core.models import NO_COMMENT

ENDPOINT = "http://ollama.local/api/chat"


def make_client(handler, **kwargs):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return ChatClient(ENDPOINT, "llama3", http_client=http, **kwargs)


def reply(payload, status=200):
    return lambda request: httpx.Response(status, json=payload)


class TestExtractContent:
    def test_native_shape(self):
        assert extract_content({"message": {"role": "assistant", "content": "native"}}) == "native"

    def test_openai_shape(self):
        assert extract_content({"choices": [{"message": {"content": "openai"}}]}) == "openai"

    def test_native_takes_precedence(self):
        payload = {"message": {"content": "native"}, "choices": [{"message": {"content": "openai"}}]}
        assert extract_content(payload) == "native"

    @pytest.mark.parametrize("key", ["content", "response", "text"])
    def test_single_field_shapes(self, key):
        assert extract_content({key: "flat"}) == "flat"

    @pytest.mark.parametrize("content", [None, "", "   \n"])
    def test_empty_content_is_no_comment(self, content):
        assert extract_content({"message": {"content": content}}) == NO_COMMENT

    def test_error_field_raises_api_error(self):
        with pytest.raises(ApiError, match="model not loaded"):
            extract_content({"error": "model not loaded"})

    def test_unknown_shape_lists_keys(self):
        with pytest.raises(UnparsableResponseError, match="Keys: foo, bar"):
            extract_content({"foo": 1, "bar": 2})

    def test_empty_choices_is_unparsable(self):
        with pytest.raises(UnparsableResponseError):
            extract_content({"choices": []})


class TestChatClientRequest:
    def test_request_body_carries_both_output_limits(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["headers"] = request.headers
            return httpx.Response(200, json={"message": {"content": "ok"}})

        client = make_client(handler, token_limit=2048)
        assert client.call("system text", "user text") == "ok"

        body = seen["body"]
        assert body["model"] == "llama3"
        assert body["stream"] is False
        assert body["max_tokens"] == 2048
        assert body["options"] == {"num_predict": 2048}
        assert body["messages"] == [
            {"role": "system", "content": "system text"},
            {"role": "user", "content": "user text"},
        ]
        assert "authorization" not in seen["headers"]

    def test_model_override(self):
        seen = {}

        def handler(request):
            seen["model"] = json.loads(request.content)["model"]
            return httpx.Response(200, json={"message": {"content": "ok"}})

        make_client(handler).call("s", "u", model="qwen2.5-coder")
        assert seen["model"] == "qwen2.5-coder"

    def test_bearer_token_header(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"message": {"content": "ok"}})

        make_client(handler, bearer_token="secret").call("s", "u")
        assert seen["auth"] == "Bearer secret"


class TestChatClientErrors:
    def test_http_500_model_not_found(self):
        client = make_client(reply({"error": "model not found"}, status=500))
        with pytest.raises(HttpStatusError) as exc_info:
            client.call("s", "u")
        assert exc_info.value.status_code == 500
        assert "model not found" in exc_info.value.body
        assert isinstance(exc_info.value, ReviewError)

    def test_error_body_truncated(self):
        client = make_client(lambda request: httpx.Response(502, text="x" * 2000))
        with pytest.raises(HttpStatusError) as exc_info:
            client.call("s", "u")
        assert len(exc_info.value.body) == 500

    def test_connection_failure_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError, match="connection refused"):
            make_client(handler).call("s", "u")

    def test_non_json_body(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        with pytest.raises(UnparsableResponseError):
            client.call("s", "u")

    def test_error_field_with_success_status(self):
        client = make_client(reply({"error": {"message": "quota exceeded"}}))
        with pytest.raises(ApiError, match="quota exceeded"):
            client.call("s", "u")

    def test_empty_content_returns_sentinel(self):
        client = make_client(reply({"choices": [{"message": {"content": None}}]}))
        assert client.call("s", "u") == NO_COMMENT


class TestChatClientLifecycle:
    def test_exceeds_token_limit(self):
        client = make_client(reply({}), token_limit=10)
        assert client.exceeds_token_limit("a" * 41)
        assert not client.exceeds_token_limit("a" * 40)

    def test_injected_client_is_not_closed(self):
        http = httpx.Client(transport=httpx.MockTransport(reply({"message": {"content": "ok"}})))
        with ChatClient(ENDPOINT, "llama3", http_client=http):
            pass
        assert not http.is_closed

    def test_owned_client_is_closed(self):
        client = ChatClient(ENDPOINT, "llama3")
        client.close()
        assert client._http.is_closed
