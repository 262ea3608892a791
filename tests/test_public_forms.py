from __future__ import annotations

from datetime import datetime

import pytest

from scribo.db.models import Answer, Submission
from scribo.modules.public.router import answer_text
from tests.factories import make_campaign


@pytest.fixture()
def published(db, owner):
    c, fields = make_campaign(db, owner)
    fields[0].required = True
    fields[0].message = "Le nom est obligatoire"
    c.form.success_message = "Merci !"
    db.commit()
    return c, fields


class TestAnswerText:
    def test_scalars(self):
        assert answer_text(None) == ""
        assert answer_text(True) == "true"
        assert answer_text(12.0) == "12"
        assert answer_text(12.5) == "12.5"
        assert answer_text("  Paris ") == "Paris"

    def test_list_is_joined(self):
        assert answer_text(["Français", "", "Anglais"]) == "Français, Anglais"


class TestPublicForm:
    def test_get(self, api, published):
        c, fields = published
        r = api.get(f"/api/public/forms/{c.form.id}")
        assert r.status_code == 200
        form = r.json()["form"]
        assert [f["label"] for f in form["fields"]] == ["Nom", "Langues", "Ville"]
        assert form["fields"][0]["required"] is True

    def test_missing_form(self, api, db):
        assert api.get("/api/public/forms/999").status_code == 404

    def test_deactivated(self, api, db, published):
        c, _ = published
        c.form.deactivated_at = datetime.utcnow()
        db.commit()
        assert api.get(f"/api/public/forms/{c.form.id}").status_code == 410
        r = api.post(f"/api/public/forms/{c.form.id}/submit", json={"answers": []})
        assert r.status_code == 410


class TestSubmit:
    def test_stores_text_answers(self, api, db, published):
        c, (nom, langues, ville) = published
        r = api.post(
            f"/api/public/forms/{c.form.id}/submit",
            json={"answers": [
                {"fieldId": ville.id, "value": "Lyon"},
                {"fieldId": nom.id, "value": "Durand"},
                {"fieldId": langues.id, "value": ["Français", "Arabe"]},
            ]},
        )
        assert r.status_code == 201
        body = r.json()
        assert body["message"] == "Merci !"

        s = db.get(Submission, body["submissionId"])
        assert s.campaign_id == c.id
        stored = db.query(Answer).filter(Answer.submission_id == s.id).order_by(Answer.id).all()
        assert [(a.form_field_id, a.value) for a in stored] == [
            (nom.id, "Durand"),
            (langues.id, "Français, Arabe"),
            (ville.id, "Lyon"),
        ]

    def test_empty_answers_are_not_stored(self, api, db, published):
        c, (nom, langues, _) = published
        r = api.post(
            f"/api/public/forms/{c.form.id}/submit",
            json={"answers": [{"fieldId": nom.id, "value": "Durand"}, {"fieldId": langues.id, "value": []}]},
        )
        sid = r.json()["submissionId"]
        assert db.query(Answer).filter(Answer.submission_id == sid).count() == 1

    def test_unknown_field(self, api, db, owner, published):
        c, _ = published
        _, (foreign, _, _) = make_campaign(db, owner, name="Autre")
        r = api.post(
            f"/api/public/forms/{c.form.id}/submit",
            json={"answers": [{"fieldId": foreign.id, "value": "x"}]},
        )
        assert r.status_code == 400
        assert r.json()["unknownFields"] == [foreign.id]
        assert db.query(Submission).count() == 0

    def test_missing_required(self, api, db, published):
        c, (nom, _, ville) = published
        r = api.post(
            f"/api/public/forms/{c.form.id}/submit",
            json={"answers": [{"fieldId": nom.id, "value": "   "}, {"fieldId": ville.id, "value": "Paris"}]},
        )
        assert r.status_code == 400
        missing = r.json()["missingFields"]
        assert [m["fieldId"] for m in missing] == [nom.id]
        assert missing[0]["message"] == "Le nom est obligatoire"

    def test_disabled_required_field_is_skipped(self, api, db, published):
        c, (nom, _, ville) = published
        nom.disabled = True
        db.commit()
        r = api.post(
            f"/api/public/forms/{c.form.id}/submit",
            json={"answers": [{"fieldId": ville.id, "value": "Paris"}]},
        )
        assert r.status_code == 201

    def test_missing_form(self, api, db):
        assert api.post("/api/public/forms/999/submit", json={"answers": []}).status_code == 404
