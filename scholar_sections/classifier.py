"""
Routes one email (its alert query plus everything searchable in it) to a section.

Checked in order, first hit wins:
  1. alert query looks like a person name      -> fallback (authors) section
  2. a section keyword appears in the query    -> that section
  3. a section keyword appears in the email    -> that section
  4. nothing matched                           -> fallback (authors) section

Sections are always tried in taxonomy order, so the order of the config decides ties.
"""
import re

from scholar_sections.models import Taxonomy

# Topic words that mean the query is not a plain author name.
NOT_NAME_SIGNALS = ["hexaco", "mbti", "myers", "big five", "dark triad", "machiavell", "sociosexual"]

# An ASCII letter, then ASCII letters, apostrophes or hyphens ("Sobel", "O'Neil", "Jean-Luc").
_NAME_TOKEN_RE = re.compile(r"^[A-Za-z][A-Za-z'\-]*$")


def looks_like_person_name(alert_query):
    query = (alert_query or "").strip()
    if not query:
        return False

    query_lower = query.lower()
    if any(signal in query_lower for signal in NOT_NAME_SIGNALS):
        return False

    tokens = query.split()
    if len(tokens) < 2 or len(tokens) > 4:
        return False

    alphaish = sum(1 for token in tokens if _NAME_TOKEN_RE.match(token))
    return alphaish >= min(len(tokens), 2)


def _first_matching_section(text, taxonomy):
    for section in taxonomy.topical:
        if any(matcher in text for matcher in section.matchers):
            return section.id
    return None


def classify(alert_query, search_text, taxonomy: Taxonomy) -> str:
    if looks_like_person_name(alert_query):
        return taxonomy.fallback.id

    section_id = _first_matching_section((alert_query or "").lower().strip(), taxonomy)
    if section_id is None:
        section_id = _first_matching_section((search_text or "").lower(), taxonomy)
    return section_id or taxonomy.fallback.id


class SectionClassifier:
    """classify() bound to one taxonomy."""

    def __init__(self, taxonomy: Taxonomy):
        self.taxonomy = taxonomy

    def __call__(self, alert_query, search_text):
        return classify(alert_query, search_text, self.taxonomy)
