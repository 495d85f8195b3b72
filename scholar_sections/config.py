import os

import yaml

from scholar_sections.models import Section, Taxonomy

script_path = os.path.dirname(os.path.abspath(__file__))
CONFIG_FILE = os.path.join(script_path, "config.yml")


def load_config(config_file=None):
    """Reads the YAML config. Falls back to the config.yml shipped with the package."""
    with open(config_file or CONFIG_FILE, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def load_taxonomy(config=None):
    """
    Builds the ordered, immutable section taxonomy from the 'sections' block of the config.
    Raises ValueError if the taxonomy is unusable (empty, duplicate ids, or no trailing
    fallback section without matchers).
    """
    if config is None:
        config = load_config()

    raw_sections = config.get('sections') or []
    if not raw_sections:
        raise ValueError("Config has no 'sections' defined.")

    sections = []
    seen_ids = set()
    for entry in raw_sections:
        section_id = str(entry.get('id') or '').strip()
        if not section_id:
            raise ValueError(f"Section without an id in config: {entry!r}")
        if section_id in seen_ids:
            raise ValueError(f"Duplicate section id in config: {section_id}")
        seen_ids.add(section_id)

        matchers = tuple(str(m).lower() for m in (entry.get('matchers') or []) if str(m).strip())
        sections.append(Section(
            id=section_id,
            display_name=str(entry.get('name') or section_id),
            matchers=matchers,
        ))

    if sections[-1].matchers:
        raise ValueError(f"Last section '{sections[-1].id}' must have no matchers (it is the fallback bucket).")
    empty = [s.id for s in sections[:-1] if not s.matchers]
    if empty:
        raise ValueError(f"Only the last section may have no matchers, found: {', '.join(empty)}")

    return Taxonomy(sections=tuple(sections))
