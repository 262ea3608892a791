"""Infer a form schema from a spreadsheet.

Every non-empty header cell becomes one field. The type of a column is decided
by an ordered chain of rules; the first rule returning a type wins, so the
order of ``RULES`` is part of the behavior (a low-cardinality numeric column
is a choice field, not a number).
"""

from __future__ import annotations

import enum
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Callable, Optional

from dateutil import parser as date_parser

from scribo.utils.spreadsheet import Grid, load_grid


class FieldKind(str, enum.Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    URL = "url"
    TEL = "tel"
    NUMBER = "number"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    SELECT = "select"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    FILE = "file"
    IMAGE = "image"
    MAP = "map"
    RANGE = "range"


CHOICE_KINDS = (FieldKind.SELECT, FieldKind.RADIO, FieldKind.CHECKBOX)

MAX_OPTIONS = 20
SAMPLE_SIZE = 5

REQUIRED_MARKERS = ("*", "requis", "obligatoire")
BOOLEAN_WORDS = ("oui", "non", "yes", "no", "true", "false", "1", "0", "vrai", "faux")

# (keywords, kind) checked in this order against the lower-cased header
_LABEL_KEYWORDS: tuple[tuple[tuple[str, ...], FieldKind], ...] = (
    (("email", "e-mail", "courriel"), FieldKind.EMAIL),
    (("téléphone", "telephone", "tel", "phone"), FieldKind.TEL),
    (("url", "site", "lien"), FieldKind.URL),
)
_TIME_WORDS = ("heure", "time")
_LATE_LABEL_KEYWORDS: tuple[tuple[tuple[str, ...], FieldKind], ...] = (
    (("fichier", "file", "document"), FieldKind.FILE),
    (("image", "photo"), FieldKind.IMAGE),
    (("adresse", "localisation", "lieu"), FieldKind.MAP),
)

_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_URL_RE = re.compile(r"https?://.+")


def cell_text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    if isinstance(v, (datetime, date, time)):
        return v.isoformat()
    return str(v)


def is_empty(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, float) and math.isnan(v):
        return True
    return isinstance(v, str) and not v.strip()


def _jsonable(v: Any) -> Any:
    if isinstance(v, bool) or isinstance(v, (int, str)):
        return v
    if isinstance(v, float):
        return int(v) if v.is_integer() else v
    return cell_text(v)


def _is_number(v: Any) -> bool:
    if isinstance(v, (bool, int)):
        return True
    if isinstance(v, float):
        return not math.isnan(v)
    try:
        return not math.isnan(float(cell_text(v).strip()))
    except ValueError:
        return False


def _is_date(v: Any) -> bool:
    text = cell_text(v)
    if "/" not in text and "-" not in text:
        return False
    if isinstance(v, (datetime, date)):
        return True
    try:
        date_parser.parse(text)
    except (ValueError, OverflowError):
        return False
    return True


@dataclass
class ColumnSample:
    label: str
    values: list[Any]
    non_empty: list[Any] = field(init=False)

    def __post_init__(self):
        self.non_empty = [v for v in self.values if not is_empty(v)]

    @property
    def distinct(self) -> list[str]:
        seen: dict[str, None] = {}
        for v in self.non_empty:
            seen.setdefault(cell_text(v).lower(), None)
        return list(seen)

    def share(self, predicate: Callable[[Any], bool]) -> float:
        if not self.non_empty:
            return 0.0
        return sum(1 for v in self.non_empty if predicate(v)) / len(self.non_empty)


@dataclass
class FieldAnalysis:
    label: str
    type: FieldKind
    required: bool
    options: list[str]
    sample_values: list[Any]
    fill_rate: int

    def as_dict(self) -> dict:
        return {
            "label": self.label,
            "type": self.type.value,
            "required": self.required,
            "options": list(self.options),
            "sampleValues": list(self.sample_values),
            "fillRate": self.fill_rate,
        }


# ---------------------------------------------------------------------------
# Rules (each returns a kind or None to fall through)
# ---------------------------------------------------------------------------


def _by_label(col: ColumnSample) -> Optional[FieldKind]:
    label = col.label.lower()
    for words, kind in _LABEL_KEYWORDS:
        if any(w in label for w in words):
            return kind
    if "date" in label:
        if any(w in label for w in _TIME_WORDS):
            return FieldKind.DATETIME
        return FieldKind.DATE
    if any(w in label for w in _TIME_WORDS):
        return FieldKind.TIME
    for words, kind in _LATE_LABEL_KEYWORDS:
        if any(w in label for w in words):
            return kind
    return None


def _no_values(col: ColumnSample) -> Optional[FieldKind]:
    return FieldKind.TEXT if not col.non_empty else None


def _by_cardinality(col: ColumnSample) -> Optional[FieldKind]:
    distinct = col.distinct
    if len(distinct) > 10 or len(col.non_empty) <= len(distinct) * 3:
        return None
    if len(distinct) == 2:
        if all(any(word in v for word in BOOLEAN_WORDS) for v in distinct):
            return FieldKind.CHECKBOX
        return FieldKind.RADIO
    return FieldKind.RADIO if len(distinct) <= 5 else FieldKind.SELECT


def _mostly_numbers(col: ColumnSample) -> Optional[FieldKind]:
    return FieldKind.NUMBER if col.share(_is_number) > 0.8 else None


def _mostly_emails(col: ColumnSample) -> Optional[FieldKind]:
    return FieldKind.EMAIL if col.share(lambda v: bool(_EMAIL_RE.fullmatch(cell_text(v)))) > 0.7 else None


def _mostly_urls(col: ColumnSample) -> Optional[FieldKind]:
    return FieldKind.URL if col.share(lambda v: bool(_URL_RE.match(cell_text(v)))) > 0.7 else None


def _mostly_dates(col: ColumnSample) -> Optional[FieldKind]:
    return FieldKind.DATE if col.share(_is_date) > 0.7 else None


def _long_text(col: ColumnSample) -> Optional[FieldKind]:
    avg = sum(len(cell_text(v)) for v in col.non_empty) / len(col.non_empty)
    return FieldKind.TEXTAREA if avg > 100 else None


RULES: tuple[Callable[[ColumnSample], Optional[FieldKind]], ...] = (
    _by_label,
    _no_values,
    _by_cardinality,
    _mostly_numbers,
    _mostly_emails,
    _mostly_urls,
    _mostly_dates,
    _long_text,
)


def determine_kind(col: ColumnSample) -> FieldKind:
    for rule in RULES:
        kind = rule(col)
        if kind is not None:
            return kind
    return FieldKind.TEXT


def extract_options(kind: FieldKind, values: list[Any]) -> list[str]:
    if kind not in CHOICE_KINDS:
        return []
    seen: dict[str, None] = {}
    for v in values:
        text = cell_text(v).strip()
        if text:
            seen.setdefault(text, None)
    return list(seen)[:MAX_OPTIONS]


def _has_required_marker(label: str) -> bool:
    lower = label.lower()
    return any(m in lower for m in REQUIRED_MARKERS)


def analyze_column(label: str, values: list[Any]) -> FieldAnalysis:
    col = ColumnSample(label=label, values=list(values))
    fill = len(col.non_empty) / len(col.values) if col.values else 0.0
    kind = determine_kind(col)
    return FieldAnalysis(
        label=label.replace("*", "").strip(),
        type=kind,
        required=_has_required_marker(label) or fill > 0.8,
        options=extract_options(kind, col.non_empty),
        sample_values=[_jsonable(v) for v in col.non_empty[:SAMPLE_SIZE]],
        fill_rate=int(math.floor(fill * 100 + 0.5)),
    )


def analyze_grid(grid: Grid) -> list[FieldAnalysis]:
    out: list[FieldAnalysis] = []
    for idx, header in enumerate(grid.header):
        label = cell_text(header).strip()
        if not label:
            continue
        out.append(analyze_column(label, grid.column(idx)))
    return out


def analyze_spreadsheet(data: bytes, filename: str = "", content_type: str = "") -> list[FieldAnalysis]:
    return analyze_grid(load_grid(data, filename, content_type))
