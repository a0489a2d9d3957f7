"""ReconciliationReporter tests"""

from services.verification import ErrorKind, VerificationState


async def test_status_for_unverified_user(reporter, make_user):
    await make_user("a@x.com")

    report = await reporter.status_for("a@x.com")

    assert report.success is True
    assert report.is_verified is False
    assert report.state == VerificationState.UNVERIFIED
    assert report.message == "NOT VERIFIED"
    assert report.user.email == "a@x.com"


async def test_status_for_verified_user(reporter, store, make_user):
    await make_user("a@x.com")
    await store.mark_verified("a@x.com")

    report = await reporter.status_for("a@x.com")

    assert report.is_verified is True
    assert report.state == VerificationState.VERIFIED
    assert report.message == "VERIFIED"


async def test_status_for_unknown_email(reporter):
    report = await reporter.status_for("nobody@x.com")

    assert report.success is False
    assert report.error_kind == ErrorKind.NOT_FOUND


async def test_summary_counts(reporter, store, make_user):
    a = await make_user("a@x.com")
    b = await make_user("b@x.com")
    await make_user("c@x.com")
    await store.set_remote_id(a.local_id, "R1")
    await store.set_remote_id(b.local_id, "R2")
    await store.mark_verified("b@x.com")

    summary = await reporter.all_with_status()

    assert summary.success is True
    assert summary.total == 3
    assert summary.verified_count == 1
    assert summary.unverified_count == 2
    assert summary.pending_count == 1
    assert summary.linked_count == 2
    assert summary.verification_rate == 33.3
    assert len(summary.users) == 3


async def test_summary_of_empty_table(reporter):
    summary = await reporter.all_with_status()

    assert summary.success is True
    assert summary.total == 0
    assert summary.verification_rate == 0.0
    assert summary.users == []


async def test_reporter_never_writes(reporter, store, make_user):
    await make_user("a@x.com")
    before = await store.find_by_email("a@x.com")

    await reporter.status_for("a@x.com")
    await reporter.all_with_status()

    assert await store.find_by_email("a@x.com") == before
