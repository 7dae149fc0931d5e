from triage.conversation.disposition import parse_disposition


def test_parses_trailing_json_object() -> None:
    text = 'Reset the VPN profile.\n{"category": "network", "priority": "P2", "escalate": true, "summary": "VPN drops"}'

    disposition = parse_disposition(text)

    assert disposition is not None
    assert disposition.category == "network"
    assert disposition.priority == "P2"
    assert disposition.escalate is True
    assert disposition.summary == "VPN drops"


def test_parses_fenced_json_with_nested_braces() -> None:
    text = 'Plan: use {placeholders} carefully.\n```json\n{"category": "email", "summary": "a {b} c"}\n```'

    disposition = parse_disposition(text)

    assert disposition is not None
    assert disposition.category == "email"
    assert disposition.summary == "a {b} c"


def test_returns_none_without_trailing_object() -> None:
    assert parse_disposition("Just restart it.") is None
    assert parse_disposition('{"category": "network"} then restart it.') is None
    assert parse_disposition('Result: {"unrelated": 1}') is None
    assert parse_disposition('Broken: {"category": ') is None
