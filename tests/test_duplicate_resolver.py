"""
Duplicate resolver unit tests.

Lookups run against the in-memory FakeSupabase; the error path uses a
MagicMock query chain that raises on execute().
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from cohort.models.member_import import DetailStatus
from cohort.services.duplicate_resolver import check_duplicate, escape_ilike
from cohort.services.import_report import RecordFailure

from conftest import FakeSupabase


def _future() -> str:
    return (datetime.now(timezone.utc) + timedelta(days=3)).isoformat()


def _past() -> str:
    return (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()


class TestEscapeIlike:

    def test_wildcards_are_escaped(self):
        assert escape_ilike("first_last%x@y.com") == "first\\_last\\%x@y.com"

    def test_plain_email_unchanged(self):
        assert escape_ilike("ana@x.com") == "ana@x.com"


class TestCheckDuplicate:

    def test_free_email_returns_none(self):
        db = FakeSupabase(tables={"profiles": [], "user_invites": []})

        assert check_duplicate(db, "co-1", "ana@x.com") is None

    def test_existing_member_is_duplicate_case_insensitive(self):
        db = FakeSupabase(tables={
            "profiles": [{"id": "p1", "company_id": "co-1", "email": "Ana@X.com"}],
        })

        assert check_duplicate(db, "co-1", "ana@x.COM") == DetailStatus.DUPLICATE

    def test_member_check_runs_before_invite_check(self):
        db = FakeSupabase(tables={
            "profiles": [{"id": "p1", "company_id": "co-1", "email": "ana@x.com"}],
            "user_invites": [{"company_id": "co-1", "email": "ana@x.com",
                              "status": "pending", "expires_at": _future()}],
        })

        assert check_duplicate(db, "co-1", "ana@x.com") == DetailStatus.DUPLICATE
        assert db.calls == ["profiles"]

    def test_pending_invite_is_invite_pending(self):
        db = FakeSupabase(tables={
            "profiles": [],
            "user_invites": [{"company_id": "co-1", "email": "ana@x.com",
                              "status": "pending", "expires_at": _future()}],
        })

        assert check_duplicate(db, "co-1", "ANA@x.com") == DetailStatus.INVITE_PENDING

    def test_accepted_or_expired_invites_do_not_block(self):
        db = FakeSupabase(tables={
            "profiles": [],
            "user_invites": [
                {"company_id": "co-1", "email": "ana@x.com", "status": "accepted", "expires_at": _future()},
                {"company_id": "co-1", "email": "ana@x.com", "status": "pending", "expires_at": _past()},
            ],
        })

        assert check_duplicate(db, "co-1", "ana@x.com") is None

    def test_other_company_does_not_count(self):
        db = FakeSupabase(tables={
            "profiles": [{"id": "p1", "company_id": "co-2", "email": "ana@x.com"}],
            "user_invites": [],
        })

        assert check_duplicate(db, "co-1", "ana@x.com") is None

    def test_underscore_in_email_is_not_a_wildcard(self):
        db = FakeSupabase(tables={
            "profiles": [{"id": "p1", "company_id": "co-1", "email": "anaXlima@x.com"}],
            "user_invites": [],
        })

        assert check_duplicate(db, "co-1", "ana_lima@x.com") is None

    def test_lookup_error_is_record_failure(self):
        db = MagicMock()
        db.table.return_value.select.return_value.eq.return_value.ilike.return_value \
            .limit.return_value.execute.side_effect = Exception("connection reset")

        result = check_duplicate(db, "co-1", "ana@x.com")

        assert isinstance(result, RecordFailure)
        assert "connection reset" in result.error
