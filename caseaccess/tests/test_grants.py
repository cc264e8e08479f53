"""
Access Grant Store Tests
========================

Grant/revoke semantics on the case_access relation.
"""

import pytest
from sqlalchemy.exc import OperationalError

from caseaccess.db.models import CaseAccess, User
from caseaccess.errors import ErrorKind, GrantOutcome, RevokeOutcome, TransientStoreError
from caseaccess.grants import CaseAccessStore


class TestGrant:
    def test_grant_creates_row(self, db, seed):
        store = CaseAccessStore(db)
        result = store.grant(seed["case_1"], seed["lawyer_2"], granted_by=seed["client_1"])

        assert result.ok
        assert result.outcome == GrantOutcome.GRANTED
        assert result.record.granted_by == seed["client_1"]
        assert store.has_grant(seed["case_1"], seed["lawyer_2"]) is True

    def test_grant_is_idempotent(self, db, seed):
        """Second grant for the same pair reports ALREADY_GRANTED, no duplicate row"""
        store = CaseAccessStore(db)
        first = store.grant(seed["case_2"], seed["lawyer_2"])
        second = store.grant(seed["case_2"], seed["lawyer_2"])

        assert first.outcome == GrantOutcome.GRANTED
        assert second.outcome == GrantOutcome.ALREADY_GRANTED
        assert second.ok
        assert second.record.id == first.record.id
        count = db.query(CaseAccess).filter(
            CaseAccess.case_id == seed["case_2"], CaseAccess.lawyer_id == seed["lawyer_2"]
        ).count()
        assert count == 1

    def test_grant_to_client_rejected(self, db, seed):
        result = CaseAccessStore(db).grant(seed["case_1"], seed["client_2"])
        assert result.outcome == GrantOutcome.WRONG_ROLE
        assert result.error_kind == ErrorKind.VALIDATION

    def test_grant_to_admin_rejected(self, db, seed):
        result = CaseAccessStore(db).grant(seed["case_1"], seed["admin"])
        assert result.outcome == GrantOutcome.WRONG_ROLE

    def test_grant_to_unknown_user(self, db, seed):
        result = CaseAccessStore(db).grant(seed["case_1"], "no-such-user")
        assert result.outcome == GrantOutcome.USER_NOT_FOUND
        assert not result.ok

    def test_grant_on_unknown_case(self, db, seed):
        result = CaseAccessStore(db).grant("no-such-case", seed["lawyer_2"])
        assert result.outcome == GrantOutcome.CASE_NOT_FOUND
        assert result.error_kind == ErrorKind.FORBIDDEN

    def test_grant_to_inactive_lawyer(self, db, seed):
        db.query(User).filter(User.id == seed["lawyer_2"]).update({User.is_active: False})
        db.commit()

        result = CaseAccessStore(db).grant(seed["case_1"], seed["lawyer_2"])
        assert result.outcome == GrantOutcome.INACTIVE
        assert CaseAccessStore(db).has_grant(seed["case_1"], seed["lawyer_2"]) is False

    def test_grant_without_commit_can_be_rolled_back(self, db, seed):
        store = CaseAccessStore(db)
        result = store.grant(seed["case_2"], seed["lawyer_1"], commit=False)
        assert result.outcome == GrantOutcome.GRANTED

        db.rollback()
        assert store.has_grant(seed["case_2"], seed["lawyer_1"]) is False

    def test_store_failure_raises_transient(self, db, seed, monkeypatch):
        store = CaseAccessStore(db)

        def boom(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is gone"))

        monkeypatch.setattr(db, "query", boom)
        with pytest.raises(TransientStoreError) as exc_info:
            store.grant(seed["case_1"], seed["lawyer_2"])
        assert exc_info.value.kind == ErrorKind.TRANSIENT_STORE


class TestRevoke:
    def test_revoke_removes_grant(self, db, seed):
        store = CaseAccessStore(db)
        result = store.revoke(seed["case_1"], seed["lawyer_1"])

        assert result.outcome == RevokeOutcome.REVOKED
        assert store.has_grant(seed["case_1"], seed["lawyer_1"]) is False

    def test_revoke_without_grant(self, db, seed):
        result = CaseAccessStore(db).revoke(seed["case_2"], seed["lawyer_1"])
        assert result.outcome == RevokeOutcome.NOT_GRANTED
        assert result.error_kind == ErrorKind.VALIDATION

    def test_regrant_after_revoke(self, db, seed):
        store = CaseAccessStore(db)
        store.revoke(seed["case_1"], seed["lawyer_1"])
        result = store.grant(seed["case_1"], seed["lawyer_1"])
        assert result.outcome == GrantOutcome.GRANTED


class TestListing:
    def test_list_case_grants_includes_lawyer(self, db, seed):
        store = CaseAccessStore(db)
        store.grant(seed["case_1"], seed["lawyer_2"])

        grants = store.list_case_grants(seed["case_1"])
        assert {g.lawyer_id for g in grants} == {seed["lawyer_1"], seed["lawyer_2"]}
        assert all(g.lawyer.email.endswith("@test.local") for g in grants)

    def test_list_lawyer_grants(self, db, seed):
        store = CaseAccessStore(db)
        store.grant(seed["case_2"], seed["lawyer_1"])

        grants = store.list_lawyer_grants(seed["lawyer_1"])
        assert {g.case_id for g in grants} == {seed["case_1"], seed["case_2"]}
        assert store.list_lawyer_grants(seed["lawyer_2"]) == []


class TestConcurrentGrant:
    def test_lost_insert_race_collapses_to_already_granted(self, db, seed, monkeypatch):
        """Another session inserts the same pair after our existence check"""
        from caseaccess.db.session import SessionLocal

        other = SessionLocal()
        try:
            other.add(CaseAccess(case_id=seed["case_2"], lawyer_id=seed["lawyer_2"]))
            other.commit()
        finally:
            other.close()

        store = CaseAccessStore(db)
        real_find = store._find
        calls = []

        def stale_find(case_id, lawyer_id):
            calls.append((case_id, lawyer_id))
            if len(calls) == 1:
                return None
            return real_find(case_id, lawyer_id)

        monkeypatch.setattr(store, "_find", stale_find)

        result = store.grant(seed["case_2"], seed["lawyer_2"])

        assert result.outcome == GrantOutcome.ALREADY_GRANTED
        assert result.ok
        assert result.record is not None
        db.commit()
        count = db.query(CaseAccess).filter(
            CaseAccess.case_id == seed["case_2"], CaseAccess.lawyer_id == seed["lawyer_2"]
        ).count()
        assert count == 1
