import re

from scholar_sections.markup import document_text, iter_elements, parent_of, parse_markup, rendered_text
from scholar_sections.models import clean_study, is_valid_study

# Link texts that are footer actions / social links rather than results.
LINK_TEXT_DENYLIST = [
    "Cancel alert",
    "Google Scholar",
    "Twitter",
    "Facebook",
    "Manage alerts",
    "unsubscribe",
    "accounts.google.com",
]

# Stripped from snippet text in this order; the long sentence has to go before its prefixes.
BOILERPLATE_PHRASES = [
    "This message was sent by Google Scholar because you're following new results for",
    "This message was sent by Google Scholar",
    "You're following new results for",
    "Cancel alert",
    "Manage alerts",
]

CONTAINER_TAGS = {"tr", "td", "table"}
MAX_CONTAINER_HOPS = 8

_ALERT_QUERY_RE = re.compile(
    r"following new results for\s+(.+?)(?:\.\s|\.?$|Cancel alert|You can manage|Manage alerts)",
    re.IGNORECASE,
)
_BOILERPLATE_RES = [
    re.compile(re.escape(phrase).replace("'", "['’]"), re.IGNORECASE)
    for phrase in BOILERPLATE_PHRASES
]
_YEAR_RE = re.compile(r"\b(19|20)\d{2}\b")
_NAME_LIST_RE = re.compile(r"^[A-Za-z .,'-]+$")
_SENTENCE_PUNCT_RE = re.compile(r"[.!?]")


def infer_alert_query(text):
    """
    Recovers the alert query from the footer sentence
    "... because you're following new results for <query>. Cancel alert".
    Returns "" when the sentence is not there.
    """
    text = re.sub(r"\s+", " ", text or "").strip()
    match = _ALERT_QUERY_RE.search(text)
    if match and match.group(1):
        return match.group(1).strip()
    return ""


def find_result_container(anchor):
    """Closest tr/td/table at most 8 hops up from the link, else the link's parent (or None)."""
    node = anchor
    for _ in range(MAX_CONTAINER_HOPS):
        if node is None:
            break
        if node.name in CONTAINER_TAGS:
            return node
        node = parent_of(node)
    return parent_of(anchor)


def _looks_like_citation_header(line):
    return " - " in line and _YEAR_RE.search(line) is not None and len(line) < 200


def _prose_after_source(line):
    # "Authors - Venue, 2020 - text..." rendered on one line: keep what follows the year segment
    # when it reads like a sentence, not a bare domain such as "publisher.com".
    segments = line.split(" - ")
    rest = ""
    for i, segment in enumerate(segments):
        if _YEAR_RE.search(segment):
            rest = " - ".join(segments[i + 1:]).strip()
            break
    if len(rest.split()) >= 3 and _SENTENCE_PUNCT_RE.search(rest):
        return rest
    return ""


def _looks_like_author_list(line):
    return (
        _NAME_LIST_RE.match(line) is not None
        and len(line.split(",")) >= 2
        and _SENTENCE_PUNCT_RE.search(line) is None
    )


def clean_snippet_text(text, title):
    """
    Turns the rendered text of a result container into a summary:
    drop the title, drop alert boilerplate, then drop citation-header and author-list lines.
    """
    text = (text or "").strip()
    if not text:
        return ""

    if title:
        text = text.replace(title, " ").strip()

    for pattern in _BOILERPLATE_RES:
        text = pattern.sub(" ", text)

    lines = [line.strip() for line in re.split(r"\n+", text)]
    cleaned = []
    for line in lines:
        if not line:
            continue
        if _looks_like_citation_header(line):
            prose = _prose_after_source(line)
            if prose:
                cleaned.append(prose)
            continue
        if _looks_like_author_list(line):
            continue
        cleaned.append(line)

    return "\n".join(cleaned).strip()


def extract_snippet(container, title):
    if container is None:
        return ""
    return clean_snippet_text(rendered_text(container), title)


def candidate_links(tree):
    """Yields (anchor, title, href) for links that could be results."""
    for anchor in iter_elements(tree):
        if anchor.name != "a":
            continue
        href = (anchor.get("href") or "").strip()
        title = " ".join(rendered_text(anchor).split())
        if not href or not title:
            continue
        title_lower = title.lower()
        if any(bad.lower() in title_lower for bad in LINK_TEXT_DENYLIST):
            continue
        if not href.startswith("http"):
            continue
        yield anchor, title, href


def extract_studies(tree):
    """
    Extracts the result entries of a Scholar alert email tree.
    Entries without a usable snippet (at least 20 characters) are dropped silently,
    and the same url is only kept once.
    """
    studies = []
    seen_urls = set()
    for anchor, title, href in candidate_links(tree):
        container = find_result_container(anchor)
        study = clean_study({
            "title": title,
            "url": href,
            "summary": extract_snippet(container, title),
        })
        if not is_valid_study(study) or study.key in seen_urls:
            continue
        seen_urls.add(study.key)
        studies.append(study)
    return studies


def parse_scholar_email_html(html_content):
    """
    Parses the HTML content of a Google Scholar alert email.
    Returns (alert_query, studies) where alert_query is "" if the footer sentence is missing.
    """
    tree = parse_markup(html_content)
    return infer_alert_query(document_text(tree)), extract_studies(tree)


if __name__ == "__main__":
    sample_html_content = """
    <html><body><table>
    <tr><td>
        <h3><a href="https://scholar.google.com/scholar_url?url=https://example.org/hexaco-1">
        The HEXACO model of personality structure
        </a></h3>
        <div>K Lee, MC Ashton - Personality and Social Psychology Review, 2007</div>
        <div>The HEXACO model summarizes personality variation in six broad dimensions,
        including Honesty-Humility, which is not represented in the Big Five.</div>
    </td></tr>
    </table>
    <p>This message was sent by Google Scholar because you're following new results for HEXACO personality.</p>
    <p><a href="https://scholar.google.com/scholar_alerts?view_op=cancel_alert_options">Cancel alert</a></p>
    </body></html>
    """

    alert_query, parsed_studies = parse_scholar_email_html(sample_html_content)
    print(f"Alert query: {alert_query!r}")
    print(f"Found {len(parsed_studies)} studies:")
    for i, study in enumerate(parsed_studies):
        print(f"--- Study {i+1} ---")
        print(f"  Title: {study.title}")
        print(f"  Link: {study.url}")
        print(f"  Summary: {study.summary}")
