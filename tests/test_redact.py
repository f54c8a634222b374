from __future__ import annotations

from pymobilepush._redact import redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "deviceID": "DEVICE-1",
        "device_Token": "aabbcc",
        "subscriberKey": "user@example.com",
        "Authorization": "Bearer secret",
        "attributes": [{"key": "plan", "value": "gold"}],
        "nested": {"accessToken": "secret"},
    }

    redacted = redact_for_log(payload)
    assert redacted["deviceID"] == "DEVICE-1"
    assert redacted["device_Token"] == "<redacted>"
    assert redacted["subscriberKey"] == "<redacted>"
    assert redacted["Authorization"] == "<redacted>"
    assert redacted["attributes"] == [{"key": "plan", "value": "gold"}]
    assert redacted["nested"]["accessToken"] == "<redacted>"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_orders_sets() -> None:
    assert redact_for_log({"tags": frozenset({"b", "a"})}) == {"tags": ["a", "b"]}


def test_redact_for_log_matches_key_spellings() -> None:
    redacted = redact_for_log({"deviceToken": "aa", "device_token": "bb", "access_token": "cc", "tokenize": "ok"})
    assert redacted == {
        "deviceToken": "<redacted>",
        "device_token": "<redacted>",
        "access_token": "<redacted>",
        "tokenize": "ok",
    }
