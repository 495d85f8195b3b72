from datetime import datetime, timezone

import pytest

from scholar_sections.models import EmailInput, Study, clean_study, is_valid_study


def test_clean_study_normalizes_whitespace() -> None:
    study = clean_study({
        "title": "  A\n  multi-line   title ",
        "url": "  https://example.org/a  ",
        "summary": "  line one   with \t spaces   \nline two  ",
    })
    assert study == Study(
        title="A multi-line title",
        url="https://example.org/a",
        summary="line one with spaces\nline two",
    )


def test_clean_study_accepts_link_key() -> None:
    study = clean_study({"title": "T", "link": "https://example.org/t", "summary": "s" * 20})
    assert study.url == "https://example.org/t"


def test_clean_study_is_idempotent() -> None:
    once = clean_study({"title": " T  x ", "url": " u ", "summary": "a  b \n c"})
    assert clean_study(once) == once


@pytest.mark.parametrize("raw", [
    None,
    42,
    "just a string",
    {},
    {"title": None, "url": None, "summary": None},
    {"title": 7, "url": ["https://example.org"], "summary": {"text": "x"}},
])
def test_malformed_entries_become_invalid(raw) -> None:
    assert is_valid_study(clean_study(raw)) is False


@pytest.mark.parametrize("title, url, summary, valid", [
    ("T", "https://example.org", "exactly twenty chars", True),
    ("T", "https://example.org", "nineteen characters", False),
    ("", "https://example.org", "a summary long enough to keep", False),
    ("T", "   ", "a summary long enough to keep", False),
])
def test_is_valid_study(title: str, url: str, summary: str, valid: bool) -> None:
    assert is_valid_study(Study(title=title, url=url, summary=summary)) is valid


def test_email_input_accepts_payload_keys() -> None:
    email = EmailInput.model_validate({
        "id": 17,
        "rawHtml": "<p>x</p>",
        "alertQuery": "Big Five",
        "receivedAt": "2024-05-20T10:00:00.000Z",
        "subject": "new results",
        "from": "Google Scholar Alerts <scholaralerts-noreply@google.com>",
    })
    assert email.id == "17"
    assert email.raw_markup == "<p>x</p>"
    assert email.alert_query_hint == "Big Five"
    assert email.received_at == datetime(2024, 5, 20, 10, 0, tzinfo=timezone.utc)
    assert email.sender.startswith("Google Scholar Alerts")
    assert email.studies is None


def test_email_input_coerces_null_and_junk_fields() -> None:
    email = EmailInput.model_validate({
        "rawHtml": None,
        "studies": "not a list",
        "alertQuery": None,
        "receivedAt": "yesterday-ish",
        "subject": None,
    })
    assert email.raw_markup is None
    assert email.studies is None
    assert email.alert_query_hint == ""
    assert email.received_at is None
    assert email.subject == ""


def test_email_input_by_field_name() -> None:
    email = EmailInput(raw_markup="<p/>", studies=[], alert_query_hint="q")
    assert email.studies == []
    assert email.alert_query_hint == "q"
