APP_NAME = "Budget Timeline"
APP_WIDTH = 1100
APP_HEIGHT = 720
DB_FILE = "budget_timeline.db"
DEFAULT_ACCOUNT_NAME = "Checking"
DEFAULT_CURRENCY = "USD"

MINUTE_MS = 60_000

TRANSACTION_TYPES = ["income", "expense", "transfer"]
FREQUENCIES = ["daily", "weekly", "biweekly", "monthly", "yearly"]
GROUP_BY_OPTIONS = ["hour", "day", "week", "month", "year", "all_time"]
PENDING_FILTERS = ["all", "pending", "not_pending"]
ATTACHMENT_FILTERS = ["all", "has", "none"]
SEARCH_MODES = ["contains", "starts_with", "exact"]
TRANSFER_LAYOUTS = ["combine", "separate"]

# Backoff between retries of a failed auto-confirmation write.
CONFIRM_RETRY_DELAYS_MS = (2_000, 10_000, 60_000)

# Foreground events are debounced so a burst of <Map> events sweeps once.
FOREGROUND_DEBOUNCE_MS = 1_000

DEFAULT_SETTINGS = {
    "appearance_mode": "system",
    "require_confirmation": "0",
    "update_date_upon_confirmation": "0",
    "home_timeframe": "3",
    "transfer_layout": "combine",
    "transfer_exclude_from_totals": "1",
    "group_by": "day",
}

GROUP_BY_LABELS = {
    "hour": "Hour",
    "day": "Day",
    "week": "Week",
    "month": "Month",
    "year": "Year",
    "all_time": "All time",
}
