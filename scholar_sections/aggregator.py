import pandas as pd

from scholar_sections.models import AggregateResult, Study, Taxonomy, is_valid_study

COLUMNS = ['section_id', 'key', 'title', 'url', 'summary']


def aggregate(assignments, taxonomy: Taxonomy) -> AggregateResult:
    """
    Merges (section_id, studies) pairs, one per email, into per-section study lists.
    Duplicates are dropped by url within a section (not across sections), keeping the
    first one seen. Every section of the taxonomy is in the result, possibly empty.
    Unknown section ids are routed to the fallback section.
    """
    known_ids = set(taxonomy.ids)
    rows = []
    for section_id, studies in assignments:
        if section_id not in known_ids:
            section_id = taxonomy.fallback.id
        for study in studies:
            if not is_valid_study(study):
                continue
            rows.append({
                'section_id': section_id,
                'key': study.key,
                'title': study.title,
                'url': study.url,
                'summary': study.summary,
            })

    df = pd.DataFrame(rows, columns=COLUMNS)
    # First occurrence wins, input order kept.
    df = df.drop_duplicates(subset=['section_id', 'key'], keep='first')

    sections = {}
    counts = {}
    total = 0
    for section in taxonomy.sections:
        section_df = df[df['section_id'] == section.id]
        sections[section.id] = [
            Study(title=record['title'], url=record['url'], summary=record['summary'])
            for record in section_df.to_dict('records')
        ]
        counts[section.id] = len(sections[section.id])
        total += counts[section.id]
        if counts[section.id]:
            print(f"{section.display_name}: {counts[section.id]} unique studies (running total {total}).")

    print(f"Aggregated {total} unique studies across {sum(1 for c in counts.values() if c)} section(s).")
    return AggregateResult(sections=sections, counts=counts, total=total)
