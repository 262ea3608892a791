from __future__ import annotations

import re
from dataclasses import dataclass

from scribo.db.models.field_type import FieldType
from scribo.db.models.form import FormField
from scribo.utils.field_analyzer import CHOICE_KINDS, FieldAnalysis, cell_text
from scribo.utils.spreadsheet import Grid

CHOICE_TYPES = tuple(k.value for k in CHOICE_KINDS)

_PLACEHOLDERS = {
    "email": "exemple@email.com",
    "url": "https://exemple.com",
    "tel": "+33 1 23 45 67 89",
    "number": "Entrez un nombre",
    "date": "jj/mm/aaaa",
    "time": "hh:mm",
    "datetime": "jj/mm/aaaa hh:mm",
}

_ERROR_MESSAGES = {
    "text": "Veuillez entrer un texte valide",
    "textarea": "Veuillez entrer une description valide",
    "email": "Veuillez entrer une adresse email valide",
    "tel": "Veuillez entrer un numéro de téléphone valide",
    "number": "Veuillez entrer un nombre valide",
    "date": "Veuillez entrer une date valide",
    "time": "Veuillez entrer une heure valide",
    "datetime": "Veuillez entrer une date et heure valides",
    "file": "Veuillez sélectionner un fichier valide",
    "image": "Veuillez sélectionner une image valide",
    "url": "Veuillez entrer une URL valide",
    "radio": "Veuillez sélectionner une option",
    "checkbox": "Veuillez cocher au moins une option",
    "select": "Veuillez sélectionner une option dans la liste",
    "map": "Veuillez sélectionner un emplacement sur la carte",
    "range": "Veuillez sélectionner une valeur dans la plage",
    "color": "Veuillez sélectionner une couleur",
    "boolean": "Veuillez indiquer votre choix",
}


@dataclass
class FieldCount:
    field_name: str
    count: int


def placeholder_for(field_type: str, label: str) -> str:
    if field_type == "textarea":
        return f"Décrivez {label.lower()}"
    return _PLACEHOLDERS.get(field_type, f"Entrez {label.lower()}")


def default_error_message(field_type: str, field_name: str, required: bool) -> str:
    if required:
        return f"Le champ {field_name.lower()} est obligatoire"
    return _ERROR_MESSAGES.get(field_type, "Veuillez remplir ce champ correctement")


def slugify(text: str) -> str:
    return re.sub(r"\s+", "_", (text or "").strip().lower())


def default_options(n: int = 3) -> list[dict]:
    return [{"ordre": i, "content": f"Option {i}", "disabled": False} for i in range(1, n + 1)]


def options_from_values(values: list[str]) -> list[dict]:
    return [{"ordre": i, "content": v, "disabled": False} for i, v in enumerate(values, start=1)]


def extract_field_counts(grid: Grid) -> list[FieldCount]:
    """Read a two-column sheet: field catalog name (A) / how many of it (B), header skipped."""
    out: list[FieldCount] = []
    for row in grid.rows:
        name = cell_text(row[0] if len(row) > 0 else None).strip()
        raw = cell_text(row[1] if len(row) > 1 else None).strip()
        try:
            count = int(float(raw)) if raw else 0
        except ValueError:
            count = 0
        if name and count > 0:
            out.append(FieldCount(field_name=name, count=count))
    return out


def fields_from_counts(counts: list[FieldCount], catalog: list[FieldType], form_id: int) -> list[FormField]:
    by_name = {f.field_name: f for f in catalog}
    out: list[FormField] = []
    ordre = 1
    for fc in counts:
        ft = by_name.get(fc.field_name)
        if ft is None:
            continue
        for i in range(fc.count):
            label = f"{ft.field_name} {i + 1}"
            ff = FormField(
                form_id=form_id,
                field_type_id=ft.id,
                label=label,
                name=f"field_{ft.type}_{slugify(fc.field_name)}_{i + 1}",
                required=False,
                ordre=ordre,
                placeholder=placeholder_for(ft.type, label),
                message=default_error_message(ft.type, ft.field_name, False),
            )
            ff.options = default_options() if ft.type in CHOICE_TYPES else []
            out.append(ff)
            ordre += 1
    return out


def fields_from_analysis(analyses: list[FieldAnalysis], catalog: list[FieldType], form_id: int) -> list[FormField]:
    """One form field per analysed column; the first catalog entry of each type is used."""
    by_type: dict[str, FieldType] = {}
    for ft in catalog:
        by_type.setdefault(ft.type, ft)
    fallback = by_type.get("text")

    out: list[FormField] = []
    for ordre, fa in enumerate(analyses, start=1):
        ft = by_type.get(fa.type.value) or fallback
        if ft is None:
            continue
        ff = FormField(
            form_id=form_id,
            field_type_id=ft.id,
            label=fa.label,
            name=f"field_{ft.type}_{slugify(fa.label)}_{ordre}",
            required=fa.required,
            ordre=ordre,
            placeholder=placeholder_for(ft.type, fa.label),
            message=default_error_message(ft.type, fa.label, fa.required),
        )
        ff.options = options_from_values(fa.options)
        out.append(ff)
    return out
