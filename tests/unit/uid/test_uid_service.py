"""Tests for the uid ledger service."""

import pytest
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from uidkeeper.core.modules.uid.models import UidStatus
from uidkeeper.errors import ConflictError, UpstreamError, ValidationError

HOUR = 3600


@pytest.fixture
def ledger(core):
    return core.services.uid


class TestAddUid:
    async def test_add_then_get(self, ledger, clock):
        view = await ledger.add_uid("12345", 24)

        assert view.expiry == clock() + 24 * HOUR
        stored = await ledger.get_uid("12345")
        assert stored is not None
        assert stored.expiry == clock() + 24 * HOUR
        assert stored.status == UidStatus.ACTIVE
        assert stored.remaining_hours == 24

    async def test_add_overwrites_expiry(self, ledger, clock):
        """Re-adding sets the expiry from now, it does not accumulate."""
        await ledger.add_uid("12345", 1)
        clock.advance(30 * 60)
        await ledger.add_uid("12345", 48)

        view = await ledger.get_uid("12345")
        assert view is not None
        assert view.expiry == clock() + 48 * HOUR
        assert view.remaining_hours == 48
        assert len(await ledger.list_all_uids()) == 1

    async def test_add_can_shorten_expiry(self, ledger, clock):
        await ledger.add_uid("12345", 48)
        await ledger.add_uid("12345", 1)

        view = await ledger.get_uid("12345")
        assert view is not None
        assert view.remaining_hours == 1

    async def test_add_revives_expired_uid(self, ledger, clock):
        await ledger.add_uid("12345", 1)
        clock.advance(2 * HOUR)
        assert (await ledger.get_uid("12345")).status == UidStatus.EXPIRED

        await ledger.add_uid("12345", 5)
        assert (await ledger.get_uid("12345")).status == UidStatus.ACTIVE

    async def test_uid_is_stripped(self, ledger, clock):
        await ledger.add_uid("  12345 ", 2)

        assert await ledger.get_uid("12345") is not None

    async def test_fractional_hours(self, ledger, clock):
        view = await ledger.add_uid("12345", 1.5)

        assert view.expiry == clock() + 90 * 60
        assert view.remaining_hours == 2
        assert (await ledger.get_uid("12345")).expiry == clock() + 90 * 60

    @pytest.mark.parametrize("hours", [0, -1, -24, 0.5])
    async def test_rejects_hours_below_one(self, ledger, clock, hours):
        with pytest.raises(ValidationError, match="at least 1"):
            await ledger.add_uid("12345", hours)
        assert await ledger.list_all_uids() == []

    @pytest.mark.parametrize("hours", ["24", True, None, float("nan"), float("inf")])
    async def test_rejects_non_numeric_hours(self, ledger, clock, hours):
        with pytest.raises(ValidationError, match="must be a number"):
            await ledger.add_uid("12345", hours)

    @pytest.mark.parametrize("uid", ["", "   "])
    async def test_rejects_empty_uid(self, ledger, clock, uid):
        with pytest.raises(ValidationError, match="UID is required"):
            await ledger.add_uid(uid, 24)


class TestCreateUid:
    async def test_create_new(self, ledger, clock):
        view = await ledger.create_uid("12345", 12)

        assert view.remaining_hours == 12
        assert (await ledger.get_uid("12345")).expiry == clock() + 12 * HOUR

    async def test_create_existing_conflicts(self, ledger, clock):
        await ledger.create_uid("12345", 12)
        clock.advance(HOUR)

        with pytest.raises(ConflictError, match="already exists"):
            await ledger.create_uid("12345", 48)
        # First expiry kept
        assert (await ledger.get_uid("12345")).expiry == clock() - HOUR + 12 * HOUR

    async def test_concurrent_insert_conflicts(self, ledger, database, clock):
        """A duplicate-key error from a racing upsert is a conflict, not a store failure."""
        database.get_collection("uids").fail_with = DuplicateKeyError("E11000 duplicate key error")

        with pytest.raises(ConflictError, match="already exists"):
            await ledger.create_uid("12345", 12)


class TestRemoveUid:
    async def test_remove_is_idempotent(self, ledger, clock):
        await ledger.add_uid("12345", 24)

        assert await ledger.remove_uid("12345") is True
        assert await ledger.remove_uid("12345") is False
        assert await ledger.get_uid("12345") is None

    async def test_remove_missing(self, ledger, clock):
        assert await ledger.remove_uid("nope") is False


class TestListing:
    async def test_active_and_expired_partition(self, ledger, clock):
        await ledger.add_uid("short", 1)
        await ledger.add_uid("long", 10)
        clock.advance(HOUR)  # "short" expires exactly now

        active = await ledger.list_active_uids()
        expired = await ledger.list_expired_uids()

        assert [v.uid for v in active] == ["long"]
        assert [v.uid for v in expired] == ["short"]
        assert expired[0].remaining_hours == 0
        assert active[0].remaining_hours == 9

    async def test_list_all_empty(self, ledger, clock):
        assert await ledger.list_all_uids() == []


class TestCleanup:
    async def test_removes_exactly_the_expired(self, ledger, clock):
        await ledger.add_uid("a", 1)
        await ledger.add_uid("b", 2)
        await ledger.add_uid("c", 5)
        clock.advance(2 * HOUR)

        deleted = await ledger.cleanup_expired_uids()

        assert deleted == 2
        assert [v.uid for v in await ledger.list_all_uids()] == ["c"]
        assert await ledger.list_expired_uids() == []

    async def test_nothing_to_clean(self, ledger, clock):
        await ledger.add_uid("a", 1)

        assert await ledger.cleanup_expired_uids() == 0
        assert len(await ledger.list_all_uids()) == 1

    async def test_clear_all(self, ledger, clock):
        await ledger.add_uid("a", 1)
        await ledger.add_uid("b", 2)

        assert await ledger.clear_all_uids() == 2
        assert await ledger.list_all_uids() == []


class TestStatistics:
    async def test_counts_add_up(self, ledger, clock):
        for uid, hours in [("a", 1), ("b", 1), ("c", 3), ("d", 8)]:
            await ledger.add_uid(uid, hours)
        clock.advance(2 * HOUR)

        stats = await ledger.get_statistics()

        assert stats.total == 4
        assert stats.active == 2
        assert stats.expired == 2
        assert stats.active + stats.expired == stats.total

    async def test_empty_ledger(self, ledger, clock):
        stats = await ledger.get_statistics()

        assert (stats.total, stats.active, stats.expired) == (0, 0, 0)


class TestStoreFailures:
    async def test_store_error_becomes_upstream_error(self, ledger, database, clock):
        database.get_collection("uids").fail_with = ServerSelectionTimeoutError("no servers")

        with pytest.raises(UpstreamError, match="add_uid"):
            await ledger.add_uid("12345", 24)
        with pytest.raises(UpstreamError):
            await ledger.get_statistics()
