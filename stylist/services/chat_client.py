from __future__ import annotations

import asyncio
import base64
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from stylist.core.config import Settings, is_real_credential
from stylist.core.errors import CredentialsMissingError, NetworkError, ProviderError, StylistError

logger = logging.getLogger(__name__)

FALLBACK_TOKEN = "fallback_token"
DEFAULT_TOKEN_TTL_MS = 30 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class AccessToken:
    value: str
    expires_at: int

    def is_valid(self, now: int) -> bool:
        return now < self.expires_at


@dataclass(frozen=True, slots=True)
class AuthOk:
    token: AccessToken


@dataclass(frozen=True, slots=True)
class AuthDegraded:
    token: AccessToken
    reason: str


@dataclass(frozen=True, slots=True)
class AuthFailed:
    error: StylistError


AuthResult = AuthOk | AuthDegraded | AuthFailed


@dataclass(slots=True)
class ChatConfig:
    client_id: str
    client_secret: str
    scope: str = "GIGACHAT_API_PERS"
    auth_url: str = "https://ngw.devices.sberbank.ru:9443/api/v2/oauth"
    api_url: str = "https://gigachat.devices.sberbank.ru/api/v1"
    model: str = "GigaChat:latest"
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout_sec: float = 30.0
    token_safety_margin_sec: int = 60
    fallback_token_ttl_sec: int = 60

    @classmethod
    def from_settings(cls, s: Settings) -> "ChatConfig":
        return cls(
            client_id=s.chat_client_id,
            client_secret=s.chat_client_secret,
            scope=s.chat_scope,
            auth_url=s.chat_auth_url,
            api_url=s.chat_api_url.rstrip("/"),
            model=s.chat_model,
            temperature=s.chat_temperature,
            max_tokens=s.chat_max_tokens,
            timeout_sec=s.chat_timeout_sec,
            token_safety_margin_sec=s.chat_token_safety_margin_sec,
            fallback_token_ttl_sec=s.chat_fallback_token_ttl_sec,
        )


class ChatClient:
    """Client-credentials auth plus single-message chat completions."""

    def __init__(
        self,
        config: ChatConfig,
        http: httpx.AsyncClient,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.config = config
        self._http = http
        self._clock = clock
        self._auth: AuthOk | AuthDegraded | None = None
        self._inflight: asyncio.Task[AuthResult] | None = None

    def invalidate_token(self) -> None:
        self._auth = None

    async def get_access_token(self) -> AuthResult:
        cached = self._auth
        if cached is not None and cached.token.is_valid(self._clock()):
            return cached

        if not (is_real_credential(self.config.client_id) and is_real_credential(self.config.client_secret)):
            return AuthFailed(CredentialsMissingError("chat client id/secret are not configured"))

        task = self._inflight
        if task is None:
            task = asyncio.ensure_future(self._exchange_credentials())
            self._inflight = task
        try:
            return await asyncio.shield(task)
        finally:
            if self._inflight is task and task.done():
                self._inflight = None

    async def _exchange_credentials(self) -> AuthResult:
        raw = f"{self.config.client_id}:{self.config.client_secret}".encode("utf-8")
        headers = {
            "Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}",
            "RqUID": str(uuid.uuid4()),
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        try:
            response = await self._http.post(
                self.config.auth_url,
                headers=headers,
                content=f"scope={self.config.scope}",
                timeout=self.config.timeout_sec,
            )
        except httpx.HTTPError as exc:
            return self._degrade(f"network: {exc.__class__.__name__}")

        if not response.is_success:
            return self._degrade(f"status {response.status_code}")

        now = self._clock()
        margin_ms = self.config.token_safety_margin_sec * 1000
        try:
            body = response.json()
            value = str(body["access_token"])
            if body.get("expires_in") is not None:
                expires_at = now + int(float(body["expires_in"]) * 1000) - margin_ms
            elif body.get("expires_at") is not None:
                expires_at = int(body["expires_at"]) - margin_ms
            else:
                expires_at = now + DEFAULT_TOKEN_TTL_MS - margin_ms
        except (ValueError, KeyError, TypeError, AttributeError):
            return self._degrade("malformed token response")

        result = AuthOk(AccessToken(value=value, expires_at=max(expires_at, now + 1000)))
        self._auth = result
        logger.info("chat_token_acquired expires_in_ms=%d", result.token.expires_at - now)
        return result

    def _degrade(self, reason: str) -> AuthDegraded:
        logger.warning("chat_token_exchange_failed_using_fallback reason=%s", reason)
        expires_at = self._clock() + self.config.fallback_token_ttl_sec * 1000
        result = AuthDegraded(AccessToken(value=FALLBACK_TOKEN, expires_at=expires_at), reason=reason)
        self._auth = result
        return result

    async def generate_text(
        self,
        prompt: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        payload = {
            "model": model or self.config.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }

        response = await self._authorized_request("POST", "/chat/completions", json=payload)
        body = _json_or_error(response)
        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(response.status_code, response.text[:500])
        usage = body.get("usage") or {}
        logger.info("chat_completion_ok total_tokens=%s", usage.get("total_tokens"))
        return str(content or "")

    async def list_models(self) -> list[str]:
        response = await self._authorized_request("GET", "/models")
        body = _json_or_error(response)
        data = body.get("data") if isinstance(body, dict) else None
        return [str(m.get("id")) for m in data or [] if isinstance(m, dict) and m.get("id")]

    async def check_connection(self) -> dict[str, Any]:
        auth = await self.get_access_token()
        status: dict[str, Any] = {"auth": _auth_state(auth), "model": self.config.model, "models": 0}
        if not isinstance(auth, AuthOk):
            return status
        try:
            status["models"] = len(await self.list_models())
        except StylistError as exc:
            status["error"] = str(exc)
        return status

    async def _authorized_request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = await self._send(await self.get_access_token(), method, path, **kwargs)
        if response.status_code == 401:
            logger.warning("chat_unauthorized_refreshing_token path=%s", path)
            self.invalidate_token()
            response = await self._send(await self.get_access_token(), method, path, **kwargs)
        if not response.is_success:
            raise ProviderError(response.status_code, response.text[:500])
        return response

    async def _send(self, auth: AuthResult, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if isinstance(auth, AuthFailed):
            raise auth.error
        if isinstance(auth, AuthDegraded):
            raise ProviderError(401, f"auth degraded: {auth.reason}")

        headers = {
            "Authorization": f"Bearer {auth.token.value}",
            "Accept": "application/json",
        }
        try:
            return await self._http.request(
                method,
                f"{self.config.api_url}{path}",
                headers=headers,
                timeout=self.config.timeout_sec,
                **kwargs,
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"chat request timed out: {path}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"chat request failed: {exc}") from exc


def _json_or_error(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        raise ProviderError(response.status_code, response.text[:500])


def _auth_state(auth: AuthResult) -> str:
    if isinstance(auth, AuthOk):
        return "ok"
    if isinstance(auth, AuthDegraded):
        return "degraded"
    return "failed"
