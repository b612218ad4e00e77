from __future__ import annotations

from statshub._redact import redact_for_log


def test_redact_for_log_redacts_credentials() -> None:
    payload = {
        "activeSessions": 3,
        "Authorization": "Bearer abc",
        "config": {"api_key": "k", "X-Api-Key": "k2", "password": "pw"},
        "userAgents": ["UA1"],
    }

    redacted = redact_for_log(payload)
    assert redacted["activeSessions"] == 3
    assert redacted["Authorization"] == "<redacted>"
    assert redacted["config"] == {"api_key": "<redacted>", "X-Api-Key": "<redacted>", "password": "<redacted>"}
    assert redacted["userAgents"] == ["UA1"]


def test_redact_for_log_truncates_long_strings_and_lists() -> None:
    redacted = redact_for_log({"value": "x" * 600, "userAgents": [f"UA{i}" for i in range(60)]}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]
    assert len(redacted["userAgents"]) == 51
    assert redacted["userAgents"][-1] == "<+10 more>"
