"""Tests for the submission predicate builder, run against SQLite.

Covers:
- Global and field-scoped text search (each term narrows)
- Checkbox containment vs. exact option membership
- Date range, favorite, id allow-list, since-last-export cursor
- Base scope (campaign, soft delete) and ordering
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from scribo.core.errors import InputError, NotFoundError
from scribo.db.models import Submission
from scribo.modules.submissions.service import resolve_field_types
from scribo.utils.submission_filters import (
    FieldFilter,
    SubmissionCriteria,
    build_submission_filter,
    order_by,
)
from tests.factories import add_submission, make_campaign


@pytest.fixture()
def campaign(db, owner):
    return make_campaign(db, owner)


def _ids(db, campaign, criteria, last_export_id=None, order="asc"):
    types = resolve_field_types(db, campaign.id, criteria.referenced_field_ids())
    f = build_submission_filter(campaign.id, criteria, field_types=types, last_export_id=last_export_id)
    return [s.id for s in f.apply(db.query(Submission)).order_by(*order_by(order)).all()]


class TestSearch:
    def test_every_term_must_match(self, db, campaign):
        c, (nom, langues, ville) = campaign
        both = add_submission(db, c, {nom: "alpha beta"})
        split = add_submission(db, c, {nom: "alpha", ville: "beta"})
        add_submission(db, c, {nom: "beta"})
        add_submission(db, c, {nom: "alpha"})

        ids = _ids(db, c, SubmissionCriteria(search=["alpha", "beta"]))
        assert ids == [both.id, split.id]

    def test_case_insensitive(self, db, campaign):
        c, (nom, _, _) = campaign
        s = add_submission(db, c, {nom: "Alpha"})
        assert _ids(db, c, SubmissionCriteria(search=["ALPHA"])) == [s.id]

    def test_scoped_to_one_field(self, db, campaign):
        c, (nom, _, ville) = campaign
        add_submission(db, c, {nom: "Lyonnais", ville: "Paris"})
        s = add_submission(db, c, {nom: "Dupont", ville: "Lyon"})
        ids = _ids(db, c, SubmissionCriteria(search=["lyon"], search_field_id=ville.id))
        assert ids == [s.id]

    def test_wildcards_are_literal(self, db, campaign):
        c, (nom, _, _) = campaign
        s = add_submission(db, c, {nom: "remise 100%"})
        add_submission(db, c, {nom: "remise 100"})
        assert _ids(db, c, SubmissionCriteria(search=["%"])) == [s.id]

    def test_blank_terms_ignored(self, db, campaign):
        c, (nom, _, _) = campaign
        a = add_submission(db, c, {nom: "a"})
        b = add_submission(db, c, {nom: "b"})
        assert _ids(db, c, SubmissionCriteria(search=["", "  "])) == [a.id, b.id]


class TestFieldFilters:
    def test_checkbox_needs_every_value(self, db, campaign):
        c, (_, langues, _) = campaign
        s = add_submission(db, c, {langues: "Français, Anglais"})
        add_submission(db, c, {langues: "Anglais"})
        add_submission(db, c, {langues: "Arabe"})
        criteria = SubmissionCriteria(field_filters=[FieldFilter(langues.id, ["Anglais", "Français"])])
        assert _ids(db, c, criteria) == [s.id]

    def test_option_field_uses_membership(self, db, campaign):
        c, (_, _, ville) = campaign
        paris = add_submission(db, c, {ville: "Paris"})
        lyon = add_submission(db, c, {ville: "Lyon"})
        add_submission(db, c, {ville: "Paris-Nord"})
        criteria = SubmissionCriteria(field_filters=[FieldFilter(ville.id, ["Paris", "Lyon"])])
        assert _ids(db, c, criteria) == [paris.id, lyon.id]

    def test_unknown_field_is_not_found(self, db, campaign):
        c, _ = campaign
        criteria = SubmissionCriteria(field_filters=[FieldFilter(99999, ["x"])])
        with pytest.raises(NotFoundError):
            _ids(db, c, criteria)

    def test_field_of_other_campaign_is_not_found(self, db, owner, campaign):
        c, _ = campaign
        _, (other_nom, _, _) = make_campaign(db, owner, name="Autre")
        with pytest.raises(NotFoundError):
            _ids(db, c, SubmissionCriteria(search=["x"], search_field_id=other_nom.id))

    def test_empty_values_rejected(self, db, campaign):
        c, (_, _, ville) = campaign
        with pytest.raises(InputError):
            _ids(db, c, SubmissionCriteria(field_filters=[FieldFilter(ville.id, [])]))


class TestScalarFilters:
    def test_date_range_inclusive_whole_day(self, db, campaign):
        c, (nom, _, _) = campaign
        add_submission(db, c, {nom: "before"}, created_at=datetime(2026, 3, 31, 23, 59))
        first = add_submission(db, c, {nom: "first"}, created_at=datetime(2026, 4, 1, 0, 0))
        late = add_submission(db, c, {nom: "late"}, created_at=datetime(2026, 4, 2, 23, 30))
        add_submission(db, c, {nom: "after"}, created_at=datetime(2026, 4, 3, 0, 0))
        criteria = SubmissionCriteria(date_from=date(2026, 4, 1), date_to=date(2026, 4, 2))
        assert _ids(db, c, criteria) == [first.id, late.id]

    def test_aware_bound_mixed_with_bare_date(self, db, campaign):
        c, (nom, _, _) = campaign
        inside = add_submission(db, c, {nom: "inside"}, created_at=datetime(2026, 1, 2, 8, 0))
        add_submission(db, c, {nom: "after"}, created_at=datetime(2026, 1, 2, 9, 30))
        paris = timezone(timedelta(hours=1))
        criteria = SubmissionCriteria(date_from=date(2026, 1, 1), date_to=datetime(2026, 1, 2, 10, 0, tzinfo=paris))
        assert _ids(db, c, criteria) == [inside.id]

    def test_aware_lower_bound_converted_to_utc(self, db, campaign):
        c, (nom, _, _) = campaign
        add_submission(db, c, {nom: "early"}, created_at=datetime(2026, 1, 1, 22, 30))
        late = add_submission(db, c, {nom: "late"}, created_at=datetime(2026, 1, 1, 23, 30))
        criteria = SubmissionCriteria(date_from=datetime(2026, 1, 2, 0, 0, tzinfo=timezone(timedelta(hours=1))))
        assert _ids(db, c, criteria) == [late.id]

    def test_inverted_range_rejected(self, db, campaign):
        c, _ = campaign
        with pytest.raises(InputError):
            _ids(db, c, SubmissionCriteria(date_from=date(2026, 5, 2), date_to=date(2026, 5, 1)))

    def test_favorite(self, db, campaign):
        c, (nom, _, _) = campaign
        fav = add_submission(db, c, {nom: "a"}, favorite=True)
        plain = add_submission(db, c, {nom: "b"})
        assert _ids(db, c, SubmissionCriteria(favorite=True)) == [fav.id]
        assert _ids(db, c, SubmissionCriteria(favorite=False)) == [plain.id]

    def test_id_allow_list(self, db, campaign):
        c, (nom, _, _) = campaign
        a = add_submission(db, c, {nom: "a"})
        b = add_submission(db, c, {nom: "b"})
        add_submission(db, c, {nom: "c"})
        assert _ids(db, c, SubmissionCriteria(ids=[a.id, b.id])) == [a.id, b.id]

    def test_empty_allow_list_is_no_constraint(self, db, campaign):
        c, (nom, _, _) = campaign
        a = add_submission(db, c, {nom: "a"})
        assert _ids(db, c, SubmissionCriteria(ids=[])) == [a.id]


class TestCursorAndScope:
    def test_since_last_export(self, db, campaign):
        c, (nom, _, _) = campaign
        add_submission(db, c, {nom: "a"})
        b = add_submission(db, c, {nom: "b"})
        new = add_submission(db, c, {nom: "c"})
        criteria = SubmissionCriteria(since_last_export=True)
        assert _ids(db, c, criteria, last_export_id=b.id) == [new.id]

    def test_never_exported_has_no_cursor(self, db, campaign):
        c, (nom, _, _) = campaign
        a = add_submission(db, c, {nom: "a"})
        assert _ids(db, c, SubmissionCriteria(since_last_export=True), last_export_id=None) == [a.id]

    def test_cursor_ignored_without_flag(self, db, campaign):
        c, (nom, _, _) = campaign
        a = add_submission(db, c, {nom: "a"})
        assert _ids(db, c, SubmissionCriteria(), last_export_id=a.id) == [a.id]

    def test_soft_deleted_and_foreign_rows_excluded(self, db, owner, campaign):
        c, (nom, _, _) = campaign
        other, (other_nom, _, _) = make_campaign(db, owner, name="Autre")
        kept = add_submission(db, c, {nom: "a"})
        gone = add_submission(db, c, {nom: "b"})
        gone.deleted_at = datetime.utcnow()
        db.commit()
        add_submission(db, other, {other_nom: "a"})
        assert _ids(db, c, SubmissionCriteria()) == [kept.id]

    def test_default_order_is_newest_first(self, db, campaign):
        c, (nom, _, _) = campaign
        old = add_submission(db, c, {nom: "a"}, created_at=datetime(2026, 1, 1))
        new = add_submission(db, c, {nom: "b"}, created_at=datetime(2026, 2, 1))
        assert _ids(db, c, SubmissionCriteria(), order="desc") == [new.id, old.id]
