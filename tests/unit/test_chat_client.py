from __future__ import annotations

import asyncio

import httpx
import pytest

from conftest import FakeClock, RecordingTransport
from stylist.core.errors import CredentialsMissingError, NetworkError, ProviderError
from stylist.services.chat_client import (
    FALLBACK_TOKEN,
    AuthDegraded,
    AuthFailed,
    AuthOk,
    ChatClient,
    ChatConfig,
)

AUTH_URL = "https://auth.test/api/v2/oauth"
API_URL = "https://chat.test/api/v1"


def _config(**overrides) -> ChatConfig:
    values = dict(client_id="client-id-123", client_secret="s3cr3t", auth_url=AUTH_URL, api_url=API_URL)
    values.update(overrides)
    return ChatConfig(**values)


def _completion(content: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={"choices": [{"message": {"role": "assistant", "content": content}}], "usage": {"total_tokens": 42}},
    )


def _token(value: str = "tok-1", expires_in: int = 1800) -> httpx.Response:
    return httpx.Response(200, json={"access_token": value, "expires_in": expires_in})


def _run(transport: RecordingTransport, clock: FakeClock, scenario, config: ChatConfig | None = None):
    async def main():
        async with httpx.AsyncClient(transport=transport) as http:
            client = ChatClient(config or _config(), http, clock=clock)
            return await scenario(client)

    return asyncio.run(main())


def test_token_exchange_uses_basic_auth_and_form_body(clock: FakeClock):
    transport = RecordingTransport(lambda request: _token())

    result = _run(transport, clock, lambda client: client.get_access_token())

    assert isinstance(result, AuthOk)
    assert result.token.value == "tok-1"
    request = transport.requests[0]
    assert request.headers["Authorization"] == "Basic Y2xpZW50LWlkLTEyMzpzM2NyM3Q="
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert request.headers["RqUID"]
    assert request.content == b"scope=GIGACHAT_API_PERS"


def test_token_expiry_subtracts_safety_margin(clock: FakeClock):
    transport = RecordingTransport(lambda request: _token(expires_in=1800))

    result = _run(transport, clock, lambda client: client.get_access_token())

    assert result.token.expires_at == clock.now + 1800_000 - 60_000


def test_token_accepts_absolute_expires_at(clock: FakeClock):
    expires_at = clock.now + 10 * 60_000
    transport = RecordingTransport(
        lambda request: httpx.Response(200, json={"access_token": "abs", "expires_at": expires_at})
    )

    result = _run(transport, clock, lambda client: client.get_access_token())

    assert result.token.expires_at == expires_at - 60_000


def test_second_token_call_within_ttl_makes_no_network_call(clock: FakeClock):
    transport = RecordingTransport(lambda request: _token())

    async def scenario(client: ChatClient):
        first = await client.get_access_token()
        clock.advance(60)
        second = await client.get_access_token()
        return first, second

    first, second = _run(transport, clock, scenario)

    assert first == second
    assert len(transport.requests) == 1


def test_expired_token_is_refetched(clock: FakeClock):
    tokens = iter(["tok-1", "tok-2"])
    transport = RecordingTransport(lambda request: _token(next(tokens), expires_in=120))

    async def scenario(client: ChatClient):
        await client.get_access_token()
        clock.advance(61)
        return await client.get_access_token()

    result = _run(transport, clock, scenario)

    assert result.token.value == "tok-2"
    assert transport.count("/oauth") == 2


def test_concurrent_callers_share_one_token_fetch(clock: FakeClock):
    transport = RecordingTransport(lambda request: _token())

    async def scenario(client: ChatClient):
        return await asyncio.gather(*(client.get_access_token() for _ in range(5)))

    results = _run(transport, clock, scenario)

    assert len(transport.requests) == 1
    assert all(r.token.value == "tok-1" for r in results)


def test_failed_exchange_degrades_to_sentinel_token(clock: FakeClock):
    transport = RecordingTransport(lambda request: httpx.Response(500, text="boom"))

    result = _run(transport, clock, lambda client: client.get_access_token())

    assert isinstance(result, AuthDegraded)
    assert result.token.value == FALLBACK_TOKEN
    assert result.token.expires_at == clock.now + 60_000


def test_unreachable_auth_endpoint_degrades(clock: FakeClock):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = _run(RecordingTransport(handler), clock, lambda client: client.get_access_token())

    assert isinstance(result, AuthDegraded)


def test_placeholder_credentials_fail_without_network(clock: FakeClock):
    transport = RecordingTransport(lambda request: _token())

    result = _run(
        transport,
        clock,
        lambda client: client.get_access_token(),
        config=_config(client_id="your-client-id"),
    )

    assert isinstance(result, AuthFailed)
    assert isinstance(result.error, CredentialsMissingError)
    assert transport.requests == []


def test_generate_text_returns_message_content(clock: FakeClock):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth"):
            return _token()
        return _completion("готово")

    transport = RecordingTransport(handler)

    text = _run(transport, clock, lambda client: client.generate_text("подбери образ", temperature=0.2))

    assert text == "готово"
    chat_request = transport.requests[-1]
    assert chat_request.headers["Authorization"] == "Bearer tok-1"
    body = chat_request.read().decode("utf-8")
    assert '"role":"user"' in body.replace(" ", "")
    assert '"temperature":0.2' in body.replace(" ", "")


def test_401_triggers_exactly_one_refetch_and_retry(clock: FakeClock):
    tokens = iter(["stale", "fresh"])
    chat_calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth"):
            return _token(next(tokens))
        chat_calls["n"] += 1
        if chat_calls["n"] == 1:
            return httpx.Response(401, text="token expired")
        assert request.headers["Authorization"] == "Bearer fresh"
        return _completion("после ретрая")

    transport = RecordingTransport(handler)

    text = _run(transport, clock, lambda client: client.generate_text("привет"))

    assert text == "после ретрая"
    assert transport.count("/oauth") == 2
    assert transport.count("/chat/completions") == 2


def test_repeated_401_raises_provider_error_without_looping(clock: FakeClock):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth"):
            return _token()
        return httpx.Response(401, text="nope")

    transport = RecordingTransport(handler)

    with pytest.raises(ProviderError) as excinfo:
        _run(transport, clock, lambda client: client.generate_text("привет"))

    assert excinfo.value.status == 401
    assert transport.count("/chat/completions") == 2


def test_non_2xx_raises_provider_error_with_body(clock: FakeClock):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth"):
            return _token()
        return httpx.Response(429, text="rate limited")

    with pytest.raises(ProviderError) as excinfo:
        _run(RecordingTransport(handler), clock, lambda client: client.generate_text("привет"))

    assert excinfo.value.status == 429
    assert excinfo.value.body == "rate limited"


def test_chat_timeout_raises_network_error(clock: FakeClock):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth"):
            return _token()
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(NetworkError):
        _run(RecordingTransport(handler), clock, lambda client: client.generate_text("привет"))


def test_degraded_token_is_never_sent(clock: FakeClock):
    transport = RecordingTransport(lambda request: httpx.Response(503, text="down"))

    with pytest.raises(ProviderError) as excinfo:
        _run(transport, clock, lambda client: client.generate_text("привет"))

    assert excinfo.value.status == 401
    assert transport.count("/chat/completions") == 0


def test_check_connection_reports_model_count(clock: FakeClock):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth"):
            return _token()
        return httpx.Response(200, json={"data": [{"id": "GigaChat"}, {"id": "GigaChat-Pro"}]})

    status = _run(RecordingTransport(handler), clock, lambda client: client.check_connection())

    assert status["auth"] == "ok"
    assert status["models"] == 2
