"""Tests for export rendering (no database needed)."""

from __future__ import annotations

import csv
import io
import json
import xml.etree.ElementTree as ET
from datetime import datetime

import pandas as pd
import pytest

from scribo.core.errors import InputError
from scribo.db.models import Answer, FormField, Submission
from scribo.utils.exporter import (
    export_filename,
    get_format,
    render,
    render_delimited,
    render_json,
    render_xlsx,
    render_xml,
    resolve_delimiter,
    shape_rows,
    spreadsheet_columns,
)

NOM = FormField(id=11, label="Nom", name="field_nom")
VILLE = FormField(id=12, label=None, name="field_ville")
NOTE = FormField(id=13, label="Note", name="field_note")


def _submission(sid: int, values: dict) -> Submission:
    s = Submission(id=sid, created_at=datetime(2026, 4, 1, 10, 30))
    s.answers = [Answer(form_field_id=ff.id, form_field=ff, value=v) for ff, v in values.items()]
    return s


@pytest.fixture()
def rows():
    return shape_rows([
        _submission(2, {NOM: "Alice", VILLE: "Paris"}),
        _submission(1, {NOM: "Bob", NOTE: "<b>très</b> bien & \"vite\""}),
    ])


class TestShapeRows:
    def test_row_shape(self, rows):
        assert rows[0]["submissionId"] == 2
        assert rows[0]["dateSubmission"] == "2026-04-01T10:30:00"
        assert rows[0]["answers"][0] == {"fieldId": 11, "label": "Nom", "value": "Alice"}

    def test_label_falls_back_to_name(self, rows):
        assert rows[0]["answers"][1]["label"] == "field_ville"

    def test_requested_fields_in_request_order(self):
        shaped = shape_rows([_submission(1, {NOM: "Alice", VILLE: "Paris", NOTE: "x"})], field_ids=[13, 11])
        assert [a["fieldId"] for a in shaped[0]["answers"]] == [13, 11]


class TestDelimited:
    def test_named_delimiters(self):
        assert resolve_delimiter("tab") == "\t"
        assert resolve_delimiter("Pipe") == "|"
        assert resolve_delimiter(None) == ","
        assert resolve_delimiter("::") == "::"

    def test_semicolon_with_json_answers(self, rows):
        text = render_delimited(rows, ";").decode("utf-8-sig")
        parsed = list(csv.reader(io.StringIO(text), delimiter=";"))
        assert parsed[0] == ["submissionId", "dateSubmission", "answers"]
        assert parsed[1][0] == "2"
        assert json.loads(parsed[1][2])[0]["value"] == "Alice"
        assert len(parsed) == 3

    def test_multi_character_delimiter(self, rows):
        lines = render_delimited(rows, "||").decode("utf-8-sig").splitlines()
        assert lines[0] == "submissionId||dateSubmission||answers"
        assert lines[1].startswith("2||2026-04-01T10:30:00||[")


class TestJson:
    def test_pretty_array(self, rows):
        out = render_json(rows).decode("utf-8")
        assert json.loads(out) == rows
        assert "\n  " in out


class TestXlsx:
    def test_one_column_per_field_seen(self, rows):
        assert spreadsheet_columns(rows) == [(11, "Nom"), (12, "field_ville"), (13, "Note")]

    def test_missing_answers_are_empty_cells(self, rows):
        df = pd.read_excel(io.BytesIO(render_xlsx(rows)), engine="openpyxl")
        assert list(df.columns) == ["submissionId", "dateSubmission", "Nom", "field_ville", "Note"]
        assert df.loc[0, "Nom"] == "Alice"
        bob_city = df.loc[1, "field_ville"]
        assert pd.isna(bob_city) or bob_city == ""

    def test_requested_columns(self, rows):
        df = pd.read_excel(io.BytesIO(render_xlsx(rows, field_ids=[13])), engine="openpyxl")
        assert list(df.columns) == ["submissionId", "dateSubmission", "Note"]

    def test_unanswered_requested_field_uses_form_label(self, rows):
        assert spreadsheet_columns(rows, field_ids=[13, 99], labels={99: "Commentaire"}) == [
            (13, "Note"),
            (99, "Commentaire"),
        ]
        assert spreadsheet_columns(rows, field_ids=[98])[0] == (98, "field#98")

    def test_form_labels_add_no_columns(self, rows):
        assert [fid for fid, _ in spreadsheet_columns(rows, labels={99: "Commentaire"})] == [11, 12, 13]


class TestXml:
    def test_escaped_and_well_formed(self, rows):
        raw = render_xml(rows)
        assert b"&lt;b&gt;" in raw
        root = ET.fromstring(raw)
        assert root.tag == "submissions"
        subs = root.findall("submission")
        assert [s.get("id") for s in subs] == ["2", "1"]
        note = subs[1].findall("answer")[1]
        assert note.get("label") == "Note"
        assert note.text == "<b>très</b> bien & \"vite\""

    def test_control_characters_dropped(self):
        shaped = shape_rows([_submission(1, {NOM: "x\x01y\x0bz", NOTE: "ligne 1\nligne 2"})])
        root = ET.fromstring(render_xml(shaped))
        nom, note = root.find("submission").findall("answer")
        assert nom.text == "xyz"
        assert note.text == "ligne 1\nligne 2"


class TestFormats:
    def test_unknown_format(self):
        with pytest.raises(InputError):
            get_format("pdf")

    def test_format_name_case_insensitive(self):
        assert get_format("XLSX").extension == "xlsx"

    def test_render_dispatch(self, rows):
        assert render(rows, get_format("json")) == render_json(rows)

    def test_filename(self):
        name = export_filename(7, get_format("csv"), datetime(2026, 4, 1, 10, 30, 5, 123))
        assert name == "export_7_20260401103005000123.csv"
