from dataclasses import dataclass
from database.db_manager import DatabaseManager
from utils.constants import DEFAULT_SETTINGS, GROUP_BY_OPTIONS, TRANSFER_LAYOUTS
from utils.observable import VersionCounter


@dataclass
class PendingTransactionPreferences:
    require_confirmation: bool = False          # planned transactions wait for the user
    update_date_upon_confirmation: bool = False
    home_timeframe: int = 3                     # days of upcoming rows on the home list


@dataclass
class TransferPreferences:
    layout: str = "combine"                     # 'combine' | 'separate'
    exclude_from_totals: bool = True


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class PreferencesService(VersionCounter):
    """Typed view over app_settings. Every write bumps the version."""

    def __init__(self, db: DatabaseManager):
        super().__init__()
        self._db = db

    def _get(self, key: str) -> str:
        return self._db.get_setting(key, DEFAULT_SETTINGS[key])

    def _set(self, key: str, value: str):
        self._db.set_setting(key, value)
        self.bump()

    def pending(self) -> PendingTransactionPreferences:
        try:
            timeframe = int(self._get("home_timeframe"))
        except ValueError:
            timeframe = int(DEFAULT_SETTINGS["home_timeframe"])
        return PendingTransactionPreferences(
            require_confirmation=_as_bool(self._get("require_confirmation")),
            update_date_upon_confirmation=_as_bool(self._get("update_date_upon_confirmation")),
            home_timeframe=timeframe,
        )

    def transfers(self) -> TransferPreferences:
        layout = self._get("transfer_layout")
        if layout not in TRANSFER_LAYOUTS:
            layout = DEFAULT_SETTINGS["transfer_layout"]
        return TransferPreferences(
            layout=layout,
            exclude_from_totals=_as_bool(self._get("transfer_exclude_from_totals")),
        )

    def group_by(self) -> str:
        value = self._get("group_by")
        return value if value in GROUP_BY_OPTIONS else DEFAULT_SETTINGS["group_by"]

    def set_require_confirmation(self, value: bool):
        self._set("require_confirmation", "1" if value else "0")

    def set_update_date_upon_confirmation(self, value: bool):
        self._set("update_date_upon_confirmation", "1" if value else "0")

    def set_home_timeframe(self, days: int):
        if days < 0:
            raise ValueError("Timeframe cannot be negative.")
        self._set("home_timeframe", str(days))

    def set_transfer_layout(self, layout: str):
        if layout not in TRANSFER_LAYOUTS:
            raise ValueError(f"Transfer layout must be one of {', '.join(TRANSFER_LAYOUTS)}.")
        self._set("transfer_layout", layout)

    def set_transfer_exclude_from_totals(self, value: bool):
        self._set("transfer_exclude_from_totals", "1" if value else "0")

    def set_group_by(self, group_by: str):
        if group_by not in GROUP_BY_OPTIONS:
            raise ValueError(f"Invalid grouping: {group_by}")
        self._set("group_by", group_by)
