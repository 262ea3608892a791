from __future__ import annotations

import json
import logging

from sqlalchemy.orm import Session

from scribo.db.models.field_type import FieldType
from scribo.db.models.model_form import Category, ModelForm, ModelFormField
from scribo.utils.form_builder import default_error_message, placeholder_for

logger = logging.getLogger("scribo.seed")

# (catalog name, icon, type)
FIELD_TYPES = [
    ("Zone de texte", "text-area", "textarea"),
    ("Adresse email", "mail", "email"),
    ("Numéro de téléphone", "phone", "tel"),
    ("Boutons radio", "circle-dot", "radio"),
    ("Menu déroulant", "chevron-down", "select"),
    ("Heure", "clock", "time"),
    ("Fichier", "paperclip", "file"),
    ("Google Map", "map-pin", "map"),
    ("Booléen – Vrai / Faux", "toggle-left", "boolean"),
    ("Champ de texte", "type", "text"),
    ("URL", "link", "url"),
    ("Valeur numérique", "hash", "number"),
    ("Cases à cocher", "square-check", "checkbox"),
    ("Date", "calendar", "date"),
    ("Date et heure", "calendar-clock", "datetime"),
    ("Image", "image", "image"),
    ("Plage de valeurs", "sliders", "range"),
    ("Couleur", "palette", "color"),
    ("Acceptation légale", "scale", "legal"),
    ("Bloc de text", "align-left", "block"),
]

# category -> [(title, description, [(catalog name, label, required, options)])]
MODEL_FORMS = {
    "Événements": [
        (
            "Inscription à un événement",
            "Collecte des participants d'un événement",
            [
                ("Champ de texte", "Nom complet", True, []),
                ("Adresse email", "Adresse email", True, []),
                ("Numéro de téléphone", "Téléphone", False, []),
                ("Boutons radio", "Participation", True, ["Présentiel", "En ligne"]),
            ],
        ),
    ],
    "Contact": [
        (
            "Formulaire de contact",
            "Demandes entrantes depuis le site",
            [
                ("Champ de texte", "Nom", True, []),
                ("Adresse email", "Email", True, []),
                ("Menu déroulant", "Sujet", False, ["Devis", "Support", "Autre"]),
                ("Zone de texte", "Message", True, []),
            ],
        ),
    ],
}


def seed_field_types(db: Session) -> int:
    """Insert or refresh the field catalog (idempotent). Returns the number of new rows."""
    existing = {ft.field_name: ft for ft in db.query(FieldType).all()}
    created = 0
    for name, icon, ftype in FIELD_TYPES:
        ft = existing.get(name)
        if ft is None:
            db.add(FieldType(field_name=name, icon=icon, type=ftype))
            created += 1
        else:
            ft.icon = icon
            ft.type = ftype
    db.flush()
    if created:
        logger.info("Seeded %d field types", created)
    return created


def seed_model_forms(db: Session) -> int:
    catalog = {ft.field_name: ft for ft in db.query(FieldType).all()}
    created = 0
    for category_name, models in MODEL_FORMS.items():
        category = db.query(Category).filter(Category.name == category_name).first()
        if category is None:
            category = Category(name=category_name)
            db.add(category)
            db.flush()

        for title, description, fields in models:
            if db.query(ModelForm).filter(ModelForm.title == title).first():
                continue
            model = ModelForm(category_id=category.id, title=title, description=description)
            db.add(model)
            db.flush()
            for ordre, (field_name, label, required, options) in enumerate(fields, start=1):
                ft = catalog.get(field_name)
                if ft is None:
                    logger.warning("Model form %r references unknown field %r", title, field_name)
                    continue
                db.add(
                    ModelFormField(
                        model_form_id=model.id,
                        field_type_id=ft.id,
                        label=label,
                        required=required,
                        ordre=ordre,
                        placeholder=placeholder_for(ft.type, label),
                        message=default_error_message(ft.type, label, required),
                        options_json=json.dumps(
                            [{"ordre": i, "content": o, "disabled": False} for i, o in enumerate(options, start=1)],
                            ensure_ascii=False,
                        ),
                    )
                )
            created += 1
    db.flush()
    return created
