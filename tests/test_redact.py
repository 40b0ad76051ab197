from __future__ import annotations

from tripsync._redact import redact_for_log


def test_redact_for_log_redacts_credentials() -> None:
    payload = {
        "host": "broker.local",
        "username": "worker",
        "password": "pw",
        "nested": {"token": "abc", "port": 1883},
    }

    redacted = redact_for_log(payload)
    assert redacted["host"] == "broker.local"
    assert redacted["username"] == "<redacted>"
    assert redacted["password"] == "<redacted>"
    assert redacted["nested"]["token"] == "<redacted>"
    assert redacted["nested"]["port"] == 1883


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_shortens_long_polylines() -> None:
    route = [[15.0 + i / 1000, 44.0] for i in range(80)]

    redacted = redact_for_log({"route": route})

    assert len(redacted["route"]) == 51
    assert redacted["route"][-1] == "<30 more>"


def test_redact_for_log_keeps_positions() -> None:
    payload = {"location": {"lat": 15.3694, "lng": 44.191}, "isOnline": True, "password": "pw"}

    redacted = redact_for_log(payload)

    assert redacted["location"] == {"lat": 15.3694, "lng": 44.191}
    assert redacted["password"] == "<redacted>"
