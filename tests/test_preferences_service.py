"""
Tests for PreferencesService: seeded defaults, typed setters and
change notification.
"""

import pytest

from services.preferences_service import (
    PendingTransactionPreferences,
    PreferencesService,
    TransferPreferences,
)


class TestDefaults:
    """Tests for the values a fresh database starts with."""

    def test_pending_defaults(self, preferences):
        assert preferences.pending() == PendingTransactionPreferences(
            require_confirmation=False, update_date_upon_confirmation=False, home_timeframe=3,
        )

    def test_transfer_defaults(self, preferences):
        assert preferences.transfers() == TransferPreferences(layout="combine", exclude_from_totals=True)
        assert preferences.group_by() == "day"

    def test_corrupt_values_fall_back(self, db, preferences):
        """Unreadable stored values read as their defaults."""
        db.set_setting("home_timeframe", "soon")
        db.set_setting("transfer_layout", "sideways")
        db.set_setting("group_by", "decade")
        assert preferences.pending().home_timeframe == 3
        assert preferences.transfers().layout == "combine"
        assert preferences.group_by() == "day"


class TestSetters:
    """Tests for writes and their validation."""

    def test_values_persist(self, db, preferences):
        """A second service over the same database sees the writes."""
        preferences.set_require_confirmation(True)
        preferences.set_update_date_upon_confirmation(True)
        preferences.set_home_timeframe(7)
        preferences.set_transfer_layout("separate")
        preferences.set_transfer_exclude_from_totals(False)
        preferences.set_group_by("month")

        fresh = PreferencesService(db)
        assert fresh.pending() == PendingTransactionPreferences(True, True, 7)
        assert fresh.transfers() == TransferPreferences("separate", False)
        assert fresh.group_by() == "month"

    @pytest.mark.parametrize("call, value", [
        ("set_home_timeframe", -1),
        ("set_transfer_layout", "sideways"),
        ("set_group_by", "decade"),
    ])
    def test_rejects_invalid(self, preferences, call, value):
        with pytest.raises(ValueError):
            getattr(preferences, call)(value)
        assert preferences.current_value() == 0

    def test_each_write_notifies(self, preferences):
        """Subscribers learn about every change."""
        seen = []
        preferences.subscribe(lambda: seen.append(preferences.current_value()))
        preferences.set_require_confirmation(True)
        preferences.set_group_by("week")
        assert seen == [1, 2]
