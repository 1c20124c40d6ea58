"""Tests for uid status derivation and views."""

from datetime import UTC, datetime

from uidkeeper.core.modules.uid.models import UidRecord, UidStatistics, UidStatus, UidView, derive_status

NOW = 1_700_000_000


class TestDeriveStatus:
    """Tests for classifying an expiry against now."""

    def test_future_expiry_is_active(self):
        assert derive_status(NOW + 3 * 3600, NOW) == (UidStatus.ACTIVE, 3)

    def test_remaining_hours_round_up(self):
        """A partial hour counts as a whole hour."""
        assert derive_status(NOW + 1, NOW) == (UidStatus.ACTIVE, 1)
        assert derive_status(NOW + 3601, NOW) == (UidStatus.ACTIVE, 2)

    def test_expiry_equal_to_now_is_expired(self):
        assert derive_status(NOW, NOW) == (UidStatus.EXPIRED, 0)

    def test_past_expiry_reports_zero_hours(self):
        assert derive_status(NOW - 10 * 3600, NOW) == (UidStatus.EXPIRED, 0)


class TestUidView:
    def test_from_record(self):
        view = UidView.from_record(UidRecord(uid="12345", expiry=NOW + 7200), NOW)

        assert view.uid == "12345"
        assert view.status == UidStatus.ACTIVE
        assert view.remaining_hours == 2
        assert view.is_active
        assert view.expiry_date == datetime.fromtimestamp(NOW + 7200, tz=UTC)

    def test_serializes_camel_case(self):
        view = UidView.from_record(UidRecord(uid="12345", expiry=NOW - 1), NOW)
        data = view.model_dump(mode="json", by_alias=True)

        assert data["remainingHours"] == 0
        assert data["status"] == "expired"
        assert "expiryDate" in data
        assert data["expiry"] == NOW - 1


class TestUidStatistics:
    def test_counts_add_up(self):
        expiries = [NOW + 3600, NOW + 1, NOW, NOW - 3600]
        stats = UidStatistics.from_expiries(expiries, NOW)

        assert stats.total == 4
        assert stats.active == 2
        assert stats.expired == 2

    def test_empty(self):
        assert UidStatistics.from_expiries([], NOW) == UidStatistics(total=0, active=0, expired=0)
