import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_SUMMARY_LENGTH = 20

_WHITESPACE_RE = re.compile(r"\s+")
_SPACE_BEFORE_NEWLINE_RE = re.compile(r"\s+\n")
_HORIZONTAL_SPACE_RE = re.compile(r"[ \t]+")


class Study(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = Field(description="Title of the result, whitespace collapsed")
    url: str = Field(description="Link to the result as found in the email")
    summary: str = Field(description="Snippet text shown under the result")

    @property
    def key(self):
        return self.url.strip()


class Section(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    matchers: tuple[str, ...] = ()


class Taxonomy(BaseModel):
    """Ordered sections. Order decides ties, the last section is the fallback bucket."""
    model_config = ConfigDict(frozen=True)

    sections: tuple[Section, ...]

    @property
    def fallback(self) -> Section:
        return self.sections[-1]

    @property
    def topical(self) -> tuple[Section, ...]:
        return self.sections[:-1]

    @property
    def ids(self) -> list[str]:
        return [s.id for s in self.sections]

    def get(self, section_id):
        for section in self.sections:
            if section.id == section_id:
                return section
        return None


class EmailInput(BaseModel):
    """
    One email as handed over by the mail fetcher or a JSON payload.
    Accepts both the snake_case field names and the camelCase keys of the alerts payload
    (rawHtml, alertQuery, receivedAt, from). If 'studies' is a list it wins over the markup.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    raw_markup: Optional[str] = Field(default=None, alias="rawHtml")
    studies: Optional[list[Any]] = None
    alert_query_hint: str = Field(default="", alias="alertQuery")
    received_at: Optional[datetime] = Field(default=None, alias="receivedAt")
    subject: str = ""
    sender: str = Field(default="", alias="from")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return None if value is None else str(value)

    @field_validator("raw_markup", mode="before")
    @classmethod
    def _coerce_markup(cls, value):
        return value if isinstance(value, str) else None

    @field_validator("studies", mode="before")
    @classmethod
    def _coerce_studies(cls, value):
        return list(value) if isinstance(value, (list, tuple)) else None

    @field_validator("alert_query_hint", "subject", "sender", mode="before")
    @classmethod
    def _coerce_text(cls, value):
        return value if isinstance(value, str) else ""

    @field_validator("received_at", mode="before")
    @classmethod
    def _coerce_received_at(cls, value):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str) and value.strip():
            try:
                return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                return None
        return None


class NormalizedEmail(BaseModel):
    alert_query: str = ""
    studies: list[Study] = Field(default_factory=list)
    search_text: str = ""
    received_at: Optional[datetime] = None


class AggregateResult(BaseModel):
    sections: dict[str, list[Study]] = Field(default_factory=dict)
    counts: dict[str, int] = Field(default_factory=dict)
    total: int = 0

    def non_empty(self):
        """(section_id, studies) pairs that have at least one study, in taxonomy order."""
        return [(section_id, studies) for section_id, studies in self.sections.items() if studies]


def _text(value):
    return value if isinstance(value, str) else ""


def clean_study(raw) -> Study:
    """
    Normalizes whitespace of a Study or a study-like mapping.
    Anything that is not a mapping turns into an empty (invalid) Study.
    """
    if isinstance(raw, Study):
        title, url, summary = raw.title, raw.url, raw.summary
    elif isinstance(raw, Mapping):
        title = _text(raw.get("title"))
        url = _text(raw.get("url")) or _text(raw.get("link"))
        summary = _text(raw.get("summary"))
    else:
        title = url = summary = ""

    summary = _SPACE_BEFORE_NEWLINE_RE.sub("\n", summary)
    summary = _HORIZONTAL_SPACE_RE.sub(" ", summary)
    return Study(
        title=_WHITESPACE_RE.sub(" ", title).strip(),
        url=url.strip(),
        summary=summary.strip(),
    )


def is_valid_study(study: Study) -> bool:
    return bool(study.title.strip()) and bool(study.key) and len(study.summary.strip()) >= MIN_SUMMARY_LENGTH
