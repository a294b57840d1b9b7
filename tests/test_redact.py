from __future__ import annotations

from fleetwatch._redact import redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "id": 7,
        "name": "Truck",
        "access_token": "abc",
        "password": "pw",
        "nested": {"apiKey": "deadbeef", "Authorization": "Bearer x"},
    }

    redacted = redact_for_log(payload)
    assert redacted["id"] == 7
    assert redacted["name"] == "Truck"
    assert redacted["access_token"] == "<redacted>"
    assert redacted["password"] == "<redacted>"
    assert redacted["nested"]["apiKey"] == "<redacted>"
    assert redacted["nested"]["Authorization"] == "<redacted>"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_caps_long_lists() -> None:
    redacted = redact_for_log(list(range(30)), max_items=5)
    assert redacted == [0, 1, 2, 3, 4, "<+25 more>"]
