import pytest

from email_samples import EMOTIONALITY_ROW, HONESTY_ROW, alert_html, result_row
from scholar_sections.markup import parse_markup
from scholar_sections.parser import (
    candidate_links,
    clean_snippet_text,
    extract_studies,
    find_result_container,
    infer_alert_query,
    parse_scholar_email_html,
)


# --- alert query ---

def test_infer_alert_query_from_footer_sentence() -> None:
    text = (
        "...This message was sent by Google Scholar because you're following new results "
        "for Jane Doe. Cancel alert Manage alerts"
    )
    assert infer_alert_query(text) == "Jane Doe"


@pytest.mark.parametrize("text, expected", [
    ("You're following new results for [dark triad] Cancel alert", "[dark triad]"),
    ("FOLLOWING NEW RESULTS FOR Big Five You can manage your alerts", "Big Five"),
    ("following new results for Noam Sobel.", "Noam Sobel"),
    ("following new results for\n   sociosexual   orientation Manage alerts", "sociosexual orientation"),
])
def test_infer_alert_query_terminators(text: str, expected: str) -> None:
    assert infer_alert_query(text) == expected


@pytest.mark.parametrize("text", ["", None, "No alert sentence in this email."])
def test_infer_alert_query_without_sentence_is_empty(text) -> None:
    assert infer_alert_query(text) == ""


# --- snippet cleaning ---

def test_snippet_drops_title_citation_header_and_boilerplate() -> None:
    text = "Title Text\nJ. Smith, A. Doe - Nature, 2020 - summary of the paper with details.\nCancel alert"
    assert clean_snippet_text(text, "Title Text") == "summary of the paper with details."


def test_snippet_drops_header_line_on_its_own() -> None:
    text = "A Title\nL Yang, B Li - Journal of Colloid and Interface Science, 2025\nSingle-atom catalysts are promising (SACs)."
    assert clean_snippet_text(text, "A Title") == "Single-atom catalysts are promising (SACs)."


def test_snippet_drops_header_with_trailing_domain() -> None:
    text = "Author A - Journal of Stuff, 2024 - publisher.com\nThe body of the snippet stays here."
    assert clean_snippet_text(text, "unrelated") == "The body of the snippet stays here."


def test_snippet_drops_author_list_lines() -> None:
    text = "Lee K, Ashton MC, de Vries RE\nHonesty-Humility predicts cooperation in economic games."
    assert clean_snippet_text(text, "") == "Honesty-Humility predicts cooperation in economic games."


def test_author_like_line_with_sentence_punctuation_is_kept() -> None:
    text = "J. Smith, A. Doe"
    assert clean_snippet_text(text, "") == "J. Smith, A. Doe"


def test_long_line_with_dash_and_year_is_not_a_header() -> None:
    line = "In 2019 a large panel study - spanning " + "many waves of data collection " * 6 + "found stable traits."
    assert len(line) >= 200
    assert clean_snippet_text(line, "") == line


def test_title_removal_is_case_sensitive() -> None:
    text = "dark triad traits\nDark Triad Traits predict exploitative behaviour in teams."
    assert clean_snippet_text(text, "Dark Triad Traits") == (
        "dark triad traits\npredict exploitative behaviour in teams."
    )


def test_boilerplate_removal_is_case_insensitive_and_accepts_curly_apostrophe() -> None:
    text = "this message was sent by google scholar because you’re following new results for\nMANAGE ALERTS"
    assert clean_snippet_text(text, "") == ""


# --- container resolution ---

def _nested_anchor(depth: int) -> str:
    return "<table><tr><td>" + "<div>" * depth + "<a href='https://x.org/p'>Paper</a>" + "</div>" * depth + "</td></tr></table>"


def test_container_is_nearest_table_cell() -> None:
    tree = parse_markup(alert_html([HONESTY_ROW]))
    anchor = tree.find("a", class_="gse_alrt_title")
    assert find_result_container(anchor).name == "td"


def test_container_found_at_last_allowed_hop() -> None:
    tree = parse_markup(_nested_anchor(6))
    assert find_result_container(tree.find("a")).name == "td"


def test_container_beyond_hop_bound_falls_back_to_parent() -> None:
    tree = parse_markup(_nested_anchor(7))
    container = find_result_container(tree.find("a"))
    assert container.name == "div"
    assert container is tree.find("a").parent


def test_container_of_detached_link_is_none() -> None:
    tree = parse_markup("")
    assert find_result_container(tree.new_tag("a")) is None


# --- extraction ---

def test_extract_studies_from_alert_email() -> None:
    studies = extract_studies(parse_markup(alert_html([HONESTY_ROW, EMOTIONALITY_ROW])))

    assert [s.title for s in studies] == [
        "Honesty-Humility and workplace deviance",
        "Emotionality across the lifespan",
    ]
    assert studies[0].url == "https://scholar.google.com/scholar_url?url=https://example.org/honesty"
    assert studies[0].summary == (
        "We examined how Honesty-Humility predicts counterproductive work behavior (N = 812)."
    )
    assert studies[1].summary == (
        "Emotionality scores rose in adolescence and declined after age 60 in three cohorts."
    )


def test_footer_and_non_web_links_are_skipped() -> None:
    rows = [
        result_row("mailto:someone@example.org", "Write to the author", "", "A summary that is long enough to keep."),
        result_row("/relative/link", "Relative result link", "", "A summary that is long enough to keep."),
        result_row("https://twitter.com/share", "Share on Twitter", "", "A summary that is long enough to keep."),
        result_row("https://example.org/ok", "Kept result", "", "A summary that is long enough to keep."),
    ]
    studies = extract_studies(parse_markup(alert_html(rows)))
    assert [s.url for s in studies] == ["https://example.org/ok"]


def test_candidate_links_only_yields_anchors_in_document_order() -> None:
    tree = parse_markup(
        '<div href="https://example.org/div">Not a link</div>'
        '<p><a href="https://example.org/a">First</a></p>'
        '<span><b><a href=" https://example.org/b ">Second <i>paper</i></a></b></span>'
    )
    assert [(title, href) for _, title, href in candidate_links(tree)] == [
        ("First", "https://example.org/a"),
        ("Second paper", "https://example.org/b"),
    ]


def test_short_snippet_drops_the_study() -> None:
    rows = [result_row("https://example.org/short", "Short one", "", "Too short.")]
    assert extract_studies(parse_markup(alert_html(rows))) == []


def test_duplicate_urls_in_one_email_keep_first() -> None:
    rows = [
        result_row("https://example.org/same", "First title", "", "The first snippet is long enough to keep."),
        result_row(" https://example.org/same ", "Second title", "", "The second snippet is long enough to keep."),
    ]
    studies = extract_studies(parse_markup(alert_html(rows)))
    assert len(studies) == 1
    assert studies[0].title == "First title"


def test_link_without_table_uses_parent_text() -> None:
    markup = "<div><p><a href='https://x.org/p'>Paper title</a> A summary text that is long enough to keep.</p></div>"
    studies = extract_studies(parse_markup(markup))
    assert len(studies) == 1
    assert studies[0].summary == "A summary text that is long enough to keep."


def test_parse_scholar_email_html_returns_query_and_studies() -> None:
    alert_query, studies = parse_scholar_email_html(alert_html([HONESTY_ROW], query="HEXACO personality"))
    assert alert_query == "HEXACO personality"
    assert len(studies) == 1


def test_parse_scholar_email_html_empty() -> None:
    assert parse_scholar_email_html("") == ("", [])
