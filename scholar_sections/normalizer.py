from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor

from scholar_sections import parser
from scholar_sections.aggregator import aggregate
from scholar_sections.classifier import SectionClassifier
from scholar_sections.markup import document_text, parse_markup
from scholar_sections.models import EmailInput, NormalizedEmail, clean_study, is_valid_study


def email_input_from_record(record):
    """EmailInput from a fetched mail record or a JSON payload entry; junk gives an empty EmailInput."""
    if isinstance(record, EmailInput):
        return record
    if not isinstance(record, Mapping):
        return EmailInput()
    return EmailInput.model_validate(dict(record))


def normalize_email(email: EmailInput) -> NormalizedEmail:
    """
    Turns one email into its alert query, clean studies and the text used for classification.
    Pre-structured studies win over markup. Never raises: bad input just yields no studies.
    """
    alert_query = (email.alert_query_hint or "").strip()

    if email.studies is not None:
        studies = [s for s in (clean_study(raw) for raw in email.studies) if is_valid_study(s)]
        study_text = " ".join(f"{s.title} {s.summary}" for s in studies)
        return NormalizedEmail(
            alert_query=alert_query,
            studies=studies,
            search_text=f"{alert_query} {study_text}",
            received_at=email.received_at,
        )

    if not email.raw_markup:
        return NormalizedEmail(alert_query=alert_query, received_at=email.received_at)

    tree = parse_markup(email.raw_markup)
    body_text = document_text(tree)
    inferred_query = parser.infer_alert_query(body_text) or alert_query

    return NormalizedEmail(
        alert_query=inferred_query,
        studies=parser.extract_studies(tree),
        search_text=f"{inferred_query} {body_text}",
        received_at=email.received_at,
    )


def assign_section(email: EmailInput, classifier: SectionClassifier):
    """Map step for one email: (section_id, studies)."""
    normalized = normalize_email(email)
    return classifier(normalized.alert_query, normalized.search_text), normalized.studies


def process_emails(emails, taxonomy, workers=1):
    """
    Normalizes and classifies every email, then folds them into per-section lists.
    With workers > 1 the per-email work runs in a thread pool; results are still folded
    in the order the emails were given, so first-seen dedup stays reproducible.
    """
    classifier = SectionClassifier(taxonomy)
    inputs = [email_input_from_record(e) for e in emails]
    if not inputs:
        print("No emails to process.")

    if workers and workers > 1 and len(inputs) > 1:
        print(f"Parallel parsing enabled: workers={workers}")
        with ThreadPoolExecutor(max_workers=workers) as executor:
            assignments = list(executor.map(lambda e: assign_section(e, classifier), inputs))
    else:
        assignments = [assign_section(e, classifier) for e in inputs]

    with_studies = [(section_id, studies) for section_id, studies in assignments if studies]
    print(f"Parsed {len(inputs)} email(s), {len(with_studies)} with studies.")
    return aggregate(with_studies, taxonomy)
