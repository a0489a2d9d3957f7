"""UserRecordStore tests against in-memory SQLite"""

from datetime import datetime

import pytest
from sqlalchemy import update

from db.models import User
from services.verification import DuplicateRecord, NotFound, PersistenceError, VerificationState

LONG_AGO = datetime(2020, 1, 1)


@pytest.fixture
def backdate(session_maker):
    """Push every row's updated_at into the past so a refresh is observable"""
    async def _backdate():
        async with session_maker() as session:
            async with session.begin():
                await session.execute(update(User).values(updated_at=LONG_AGO))
    return _backdate


class TestLookups:
    async def test_create_and_find(self, store, make_user):
        created = await make_user("a@x.com")

        found = await store.find_by_email("a@x.com")
        by_id = await store.find_by_local_id(created.local_id)

        assert found == by_id
        assert found.verified is False
        assert found.remote_provider_id is None
        assert found.state == VerificationState.UNVERIFIED
        assert found.updated_at is not None

    async def test_email_is_matched_exactly(self, store, make_user):
        await make_user("Case@X.com")

        assert (await store.find_by_email("Case@X.com")).email == "Case@X.com"
        with pytest.raises(NotFound):
            await store.find_by_email("nobody@x.com")

    async def test_find_missing_local_id(self, store):
        with pytest.raises(NotFound):
            await store.find_by_local_id(404)

    async def test_duplicate_email_is_a_duplicate_record(self, store, make_user):
        first = await make_user("dup@x.com")

        with pytest.raises(DuplicateRecord) as exc_info:
            await make_user("dup@x.com")

        assert isinstance(exc_info.value, PersistenceError)
        assert (await store.find_by_email("dup@x.com")).local_id == first.local_id


class TestSetRemoteId:
    async def test_links_and_moves_to_pending(self, store, make_user):
        user = await make_user("a@x.com")

        linked = await store.set_remote_id(user.local_id, "R1")

        assert linked.remote_provider_id == "R1"
        assert linked.state == VerificationState.PENDING_VERIFICATION

    async def test_same_value_twice_is_a_noop(self, store, make_user):
        user = await make_user("a@x.com")
        first = await store.set_remote_id(user.local_id, "R1")

        second = await store.set_remote_id(user.local_id, "R1")

        assert second == first

    async def test_different_value_is_refused(self, store, make_user):
        user = await make_user("a@x.com")
        await store.set_remote_id(user.local_id, "R1")

        with pytest.raises(PersistenceError):
            await store.set_remote_id(user.local_id, "R2")

        assert (await store.find_by_local_id(user.local_id)).remote_provider_id == "R1"

    async def test_unknown_local_id(self, store):
        with pytest.raises(NotFound):
            await store.set_remote_id(999, "R1")


class TestMarkVerified:
    async def test_marks_verified(self, store, make_user):
        await make_user("a@x.com")

        identity = await store.mark_verified("a@x.com")

        assert identity.verified is True
        assert identity.state == VerificationState.VERIFIED

    async def test_already_verified_is_untouched(self, store, make_user):
        await make_user("a@x.com")
        first = await store.mark_verified("a@x.com")

        second = await store.mark_verified("a@x.com")

        assert second.verified is True
        assert second.updated_at == first.updated_at

    async def test_unknown_email(self, store):
        with pytest.raises(NotFound):
            await store.mark_verified("nobody@x.com")


class TestBulkAndListing:
    async def test_bulk_only_touches_unverified(self, store, make_user):
        await make_user("a@x.com")
        await make_user("b@x.com")
        await make_user("c@x.com")
        await store.mark_verified("b@x.com")

        promoted = await store.mark_all_unverified_as_verified()

        assert [u.email for u in promoted] == ["a@x.com", "c@x.com"]
        assert all(u.verified for u in promoted)
        assert await store.mark_all_unverified_as_verified() == []

    async def test_bulk_on_empty_table(self, store):
        assert await store.mark_all_unverified_as_verified() == []

    async def test_list_all_with_status(self, store, make_user):
        first = await make_user("a@x.com")
        second = await make_user("b@x.com")
        await store.set_remote_id(second.local_id, "R2")

        users = await store.list_all_with_status()

        assert {u.local_id for u in users} == {first.local_id, second.local_id}
        states = {u.email: u.state for u in users}
        assert states == {
            "a@x.com": VerificationState.UNVERIFIED,
            "b@x.com": VerificationState.PENDING_VERIFICATION,
        }


class TestUpdatedAt:
    async def test_set_remote_id_refreshes(self, store, make_user, backdate):
        user = await make_user("a@x.com")
        await backdate()

        linked = await store.set_remote_id(user.local_id, "R1")

        assert linked.updated_at > LONG_AGO

    async def test_mark_verified_refreshes(self, store, make_user, backdate):
        await make_user("a@x.com")
        await backdate()

        verified = await store.mark_verified("a@x.com")

        assert verified.updated_at > LONG_AGO

    async def test_bulk_refreshes_only_promoted_rows(self, store, make_user, backdate):
        await make_user("a@x.com")
        await make_user("b@x.com")
        await store.mark_verified("b@x.com")
        await backdate()

        promoted = await store.mark_all_unverified_as_verified()

        assert [u.email for u in promoted] == ["a@x.com"]
        assert promoted[0].updated_at > LONG_AGO
        assert (await store.find_by_email("a@x.com")).updated_at > LONG_AGO
        assert (await store.find_by_email("b@x.com")).updated_at == LONG_AGO

    async def test_noop_writes_leave_timestamp(self, store, make_user, backdate):
        user = await make_user("a@x.com")
        await store.set_remote_id(user.local_id, "R1")
        await store.mark_verified("a@x.com")
        await backdate()

        relinked = await store.set_remote_id(user.local_id, "R1")
        reverified = await store.mark_verified("a@x.com")

        assert relinked.updated_at == LONG_AGO
        assert reverified.updated_at == LONG_AGO
