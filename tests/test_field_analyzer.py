"""Tests for spreadsheet field-type inference.

Covers:
- Header keywords winning over cell values
- Cardinality rule (checkbox / radio / select) and its repetition threshold
- Value-share rules (number, email, url, date, long text)
- fillRate rounding, required markers, option extraction
- Grid / csv / xlsx entry points
"""

from __future__ import annotations

import io

import pandas as pd
import pytest

from scribo.core.errors import InputError
from scribo.utils.field_analyzer import (
    FieldKind,
    MAX_OPTIONS,
    analyze_column,
    analyze_grid,
    analyze_spreadsheet,
    extract_options,
)
from scribo.utils.spreadsheet import Grid, load_grid


class TestLabelRules:
    def test_email_header_ignores_values(self):
        result = analyze_column("Adresse email", ["12", "abc", None, "x"])
        assert result.type == FieldKind.EMAIL

    @pytest.mark.parametrize(
        "label, kind",
        [
            ("Téléphone", FieldKind.TEL),
            ("Site web", FieldKind.URL),
            ("Date de naissance", FieldKind.DATE),
            ("Date et heure", FieldKind.DATETIME),
            ("Heure d'arrivée", FieldKind.TIME),
            ("Fichier joint", FieldKind.FILE),
            ("Photo", FieldKind.IMAGE),
            ("Adresse postale", FieldKind.MAP),
        ],
    )
    def test_keywords(self, label, kind):
        assert analyze_column(label, ["a", "b"]).type == kind

    def test_email_keyword_checked_before_address(self):
        assert analyze_column("Adresse e-mail", []).type == FieldKind.EMAIL


class TestCardinality:
    def test_two_boolean_words_is_checkbox(self):
        result = analyze_column("Inscrit", ["oui", "non"] * 4)
        assert result.type == FieldKind.CHECKBOX
        assert result.options == ["oui", "non"]

    def test_two_plain_values_is_radio(self):
        result = analyze_column("Genre", ["Homme", "Femme"] * 4)
        assert result.type == FieldKind.RADIO

    def test_few_values_is_radio(self):
        result = analyze_column("Ville", ["Paris", "Lyon", "Nice"] * 4)
        assert result.type == FieldKind.RADIO
        assert result.options == ["Paris", "Lyon", "Nice"]

    def test_up_to_ten_values_is_select(self):
        values = [f"R{i}" for i in range(7)] * 4
        result = analyze_column("Région", values)
        assert result.type == FieldKind.SELECT
        assert result.options == [f"R{i}" for i in range(7)]

    def test_not_enough_repetition_falls_through(self):
        # 10 distinct values in 10 rows never repeat enough
        result = analyze_column("Score", list(range(1, 11)))
        assert result.type == FieldKind.NUMBER
        assert result.options == []

    def test_options_keep_first_seen_spelling(self):
        result = analyze_column("Statut", ["Actif", "actif", "Inactif"] * 3)
        assert result.type == FieldKind.RADIO
        assert result.options[0] == "Actif"


class TestValueRules:
    def test_mostly_numbers(self):
        values = [str(i * 1.5) for i in range(10)] + ["n/a"]
        assert analyze_column("Montant", values).type == FieldKind.NUMBER

    def test_mostly_emails(self):
        values = [f"user{i}@example.com" for i in range(10)]
        assert analyze_column("Contact", values).type == FieldKind.EMAIL

    def test_mostly_urls(self):
        values = [f"https://a{i}.example.com" for i in range(10)]
        assert analyze_column("Référence", values).type == FieldKind.URL

    def test_mostly_dates(self):
        values = [f"2024-01-{d:02d}" for d in range(1, 12)]
        assert analyze_column("Inscrit le", values).type == FieldKind.DATE

    def test_long_text(self):
        values = [("avis détaillé %d " % i) * 10 for i in range(5)]
        assert analyze_column("Avis", values).type == FieldKind.TEXTAREA

    def test_short_free_text(self):
        values = [f"texte {i}" for i in range(7)]
        assert analyze_column("Commentaire", values).type == FieldKind.TEXT

    def test_empty_column_is_text(self):
        result = analyze_column("Vide", [None, "", "   "])
        assert result.type == FieldKind.TEXT
        assert result.fill_rate == 0
        assert result.required is False


class TestFillRateAndRequired:
    def test_fill_rate_rounded_percentage(self):
        values = [f"texte {i}" for i in range(7)] + [None, None, None]
        result = analyze_column("Commentaire", values)
        assert result.fill_rate == 70
        assert result.required is False

    def test_fill_rate_half_rounds_up(self):
        # 1 of 8 -> 12.5%
        result = analyze_column("Commentaire", ["x"] + [None] * 7)
        assert result.fill_rate == 13

    def test_high_fill_rate_is_required(self):
        values = [f"texte {i}" for i in range(9)] + [None]
        assert analyze_column("Commentaire", values).required is True

    @pytest.mark.parametrize("label", ["Nom *", "Nom (requis)", "Nom obligatoire"])
    def test_required_markers(self, label):
        result = analyze_column(label, ["Alice", None, None, None])
        assert result.required is True

    def test_star_removed_from_label(self):
        assert analyze_column("Nom *", ["Alice"]).label == "Nom"

    def test_sample_values_capped(self):
        result = analyze_column("Commentaire", [f"t{i}" for i in range(9)])
        assert result.sample_values == ["t0", "t1", "t2", "t3", "t4"]


class TestExtractOptions:
    def test_truncated_to_max_in_first_seen_order(self):
        values = [f"v{i}" for i in range(25)]
        assert extract_options(FieldKind.SELECT, values) == [f"v{i}" for i in range(MAX_OPTIONS)]

    def test_non_choice_kind_has_no_options(self):
        assert extract_options(FieldKind.TEXT, ["a", "b"]) == []

    def test_blank_values_skipped(self):
        assert extract_options(FieldKind.RADIO, [" a ", "", "  ", "b", "a"]) == ["a", "b"]


class TestGridEntryPoints:
    def test_blank_headers_skipped(self):
        grid = Grid(header=["Nom", None, " ", "Email"], rows=[["A", 1, 2, "a@b.fr"]])
        labels = [a.label for a in analyze_grid(grid)]
        assert labels == ["Nom", "Email"]

    def test_as_dict_uses_api_keys(self):
        data = analyze_column("Ville", ["Paris", "Lyon"] * 4).as_dict()
        assert set(data) == {"label", "type", "required", "options", "sampleValues", "fillRate"}
        assert data["type"] == "radio"

    def test_csv_upload(self):
        rows = ["Nom,Email,Ville"] + [f"N{i},n{i}@ex.com,{'Paris' if i % 2 else 'Lyon'}" for i in range(8)]
        result = analyze_spreadsheet("\n".join(rows).encode("utf-8"), "contacts.csv")
        by_label = {a.label: a for a in result}
        assert by_label["Email"].type == FieldKind.EMAIL
        assert by_label["Ville"].type == FieldKind.RADIO
        assert by_label["Nom"].fill_rate == 100

    def test_xlsx_upload(self):
        df = pd.DataFrame({"Score": list(range(1, 11)), "Inscrit": ["oui", "non"] * 5})
        buf = io.BytesIO()
        df.to_excel(buf, index=False, engine="openpyxl")
        result = analyze_spreadsheet(buf.getvalue(), "scores.xlsx")
        by_label = {a.label: a for a in result}
        assert by_label["Score"].type == FieldKind.NUMBER
        assert by_label["Inscrit"].type == FieldKind.CHECKBOX

    def test_row_count_includes_header(self):
        grid = load_grid(b"a,b\n1,2\n3,4\n", "x.csv")
        assert grid.row_count == 3
        assert grid.cell(0, 1) == "b"
        assert grid.cell(2, 0) == "3"

    def test_unsupported_extension(self):
        with pytest.raises(InputError):
            load_grid(b"whatever", "notes.pdf")

    def test_corrupt_workbook(self):
        with pytest.raises(InputError):
            load_grid(b"not a zip archive", "broken.xlsx")

    def test_empty_upload(self):
        with pytest.raises(InputError):
            load_grid(b"", "empty.csv")
