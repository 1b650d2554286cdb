from __future__ import annotations

import json
import logging

from stylist.core.config import Settings, is_real_credential
from stylist.core.context import outfit_id_ctx, request_id_ctx
from stylist.core.logging import JsonFormatter


def test_json_formatter_includes_context_ids():
    rid = request_id_ctx.set("req-1")
    oid = outfit_id_ctx.set("outfit_1")
    try:
        record = logging.LogRecord("stylist.test", logging.WARNING, __file__, 1, "tier_failed tier=%s", ("wb",), None)
        payload = json.loads(JsonFormatter().format(record))
    finally:
        request_id_ctx.reset(rid)
        outfit_id_ctx.reset(oid)

    assert payload["message"] == "tier_failed tier=wb"
    assert payload["level"] == "WARNING"
    assert payload["request_id"] == "req-1"
    assert payload["outfit_id"] == "outfit_1"


def test_placeholder_credentials_are_not_real():
    assert not is_real_credential("")
    assert not is_real_credential("your-client-secret")
    assert not is_real_credential("EXAMPLE")
    assert is_real_credential("d4f1c2")


def test_settings_parse_marketplaces_from_env(monkeypatch):
    monkeypatch.setenv("MARKETPLACES", "wildberries, Ozon")
    monkeypatch.setenv("CHAT_CLIENT_ID", "abc")
    monkeypatch.setenv("CHAT_CLIENT_SECRET", "def")

    s = Settings(_env_file=None)

    assert s.enabled_marketplaces == ["wildberries", "ozon"]
    assert s.chat_credentials_configured
    assert s.min_relevance_score == 0.3
