from __future__ import annotations

import csv
import io
import json
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, Optional
from xml.sax.saxutils import escape as xml_escape, quoteattr

import pandas as pd

from scribo.core.errors import InputError
from scribo.db.models.submission import Submission

# characters XML 1.0 does not allow, even escaped
_XML_INVALID = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")

DELIMITERS = {
    "tab": "\t",
    "space": " ",
    "comma": ",",
    "semicolon": ";",
    "pipe": "|",
}


@dataclass(frozen=True)
class ExportFormat:
    name: str
    extension: str
    media_type: str


FORMATS = {
    "csv": ExportFormat("csv", "csv", "text/csv"),
    "json": ExportFormat("json", "json", "application/json"),
    "xlsx": ExportFormat("xlsx", "xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
    "xml": ExportFormat("xml", "xml", "application/xml"),
}


def get_format(name: str) -> ExportFormat:
    fmt = FORMATS.get((name or "").strip().lower())
    if fmt is None:
        raise InputError(f"Unsupported export format: {name}", supported=sorted(FORMATS))
    return fmt


def resolve_delimiter(value: Optional[str]) -> str:
    """Named delimiter (tab, space, comma, semicolon, pipe) or the literal string given."""
    if not value:
        return ","
    return DELIMITERS.get(value.strip().lower(), value)


def shape_rows(submissions: Iterable[Submission], field_ids: Optional[list[int]] = None) -> list[dict]:
    """Flatten submissions to {submissionId, dateSubmission, answers[]}.

    With field_ids only those fields are kept, in the requested order.
    """
    wanted = [int(x) for x in field_ids] if field_ids else None
    rows: list[dict] = []
    for s in submissions:
        by_field = {a.form_field_id: a for a in s.answers}
        order = wanted if wanted is not None else [a.form_field_id for a in s.answers]
        answers = []
        for fid in order:
            a = by_field.get(fid)
            if a is None:
                continue
            ff = a.form_field
            answers.append({
                "fieldId": fid,
                "label": (ff.label or ff.name or f"field#{fid}") if ff else f"field#{fid}",
                "value": a.value or "",
            })
        rows.append({
            "submissionId": s.id,
            "dateSubmission": s.created_at.isoformat() if s.created_at else "",
            "answers": answers,
        })
    return rows


def render_delimited(rows: list[dict], delimiter: str = ",") -> bytes:
    buf = io.StringIO()
    # csv only accepts one-character delimiters; longer literals are joined by hand
    if len(delimiter) == 1:
        w = csv.writer(buf, delimiter=delimiter, lineterminator="\n")
        w.writerow(["submissionId", "dateSubmission", "answers"])
        for r in rows:
            w.writerow([r["submissionId"], r["dateSubmission"], json.dumps(r["answers"], ensure_ascii=False)])
    else:
        buf.write(delimiter.join(["submissionId", "dateSubmission", "answers"]) + "\n")
        for r in rows:
            blob = json.dumps(r["answers"], ensure_ascii=False)
            buf.write(delimiter.join([str(r["submissionId"]), r["dateSubmission"], blob]) + "\n")
    return buf.getvalue().encode("utf-8-sig")


def render_json(rows: list[dict]) -> bytes:
    return json.dumps(rows, ensure_ascii=False, indent=2).encode("utf-8")


def spreadsheet_columns(
    rows: list[dict],
    field_ids: Optional[list[int]] = None,
    labels: Optional[Mapping[int, str]] = None,
) -> list[tuple[int, str]]:
    """(field id, header) per column: requested ids in order, else every id seen, first-seen order.

    labels supplies headers for fields that have no answer in rows.
    """
    seen: dict[int, str] = {}
    for r in rows:
        for a in r["answers"]:
            seen.setdefault(a["fieldId"], a["label"])
    known = labels or {}
    ids = [int(x) for x in field_ids] if field_ids else list(seen)
    return [(fid, seen.get(fid) or known.get(fid) or f"field#{fid}") for fid in ids]


def render_xlsx(
    rows: list[dict],
    field_ids: Optional[list[int]] = None,
    labels: Optional[Mapping[int, str]] = None,
) -> bytes:
    columns = spreadsheet_columns(rows, field_ids, labels)
    headers = ["submissionId", "dateSubmission"] + [label for _, label in columns]
    records = []
    for r in rows:
        values = {a["fieldId"]: a["value"] for a in r["answers"]}
        records.append([r["submissionId"], r["dateSubmission"]] + [values.get(fid, "") for fid, _ in columns])

    # labels may repeat across fields, so the frame is built positionally
    df = pd.DataFrame(records, columns=range(len(headers)))
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, header=headers, sheet_name="submissions")
    return buf.getvalue()


def xml_text(value: str) -> str:
    return _XML_INVALID.sub("", value or "")


def render_xml(rows: list[dict]) -> bytes:
    parts = ['<?xml version="1.0" encoding="UTF-8"?>', "<submissions>"]
    for r in rows:
        sid = quoteattr(str(r["submissionId"]))
        date = quoteattr(xml_text(r["dateSubmission"]))
        parts.append(f"  <submission id={sid} date={date}>")
        for a in r["answers"]:
            fid = quoteattr(str(a["fieldId"]))
            label = quoteattr(xml_text(a["label"]))
            parts.append(f"    <answer fieldId={fid} label={label}>{xml_escape(xml_text(a['value']))}</answer>")
        parts.append("  </submission>")
    parts.append("</submissions>")
    return ("\n".join(parts) + "\n").encode("utf-8")


def render(rows: list[dict], fmt: ExportFormat, *, delimiter: Optional[str] = None,
           field_ids: Optional[list[int]] = None, labels: Optional[Mapping[int, str]] = None) -> bytes:
    if fmt.name == "csv":
        return render_delimited(rows, resolve_delimiter(delimiter))
    if fmt.name == "json":
        return render_json(rows)
    if fmt.name == "xlsx":
        return render_xlsx(rows, field_ids, labels)
    if fmt.name == "xml":
        return render_xml(rows)
    raise InputError(f"Unsupported export format: {fmt.name}")


def export_filename(campaign_id: int, fmt: ExportFormat, now: Optional[datetime] = None) -> str:
    ts = (now or datetime.utcnow()).strftime("%Y%m%d%H%M%S%f")
    return f"export_{int(campaign_id)}_{ts}.{fmt.extension}"
