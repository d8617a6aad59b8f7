import os

DB_URL = os.getenv("DB_URL", "sqlite://db.sqlite3")
BOT_TOKEN = os.getenv("BOT_TOKEN", "")

# 1 when the orthodontist's install-day turn counts as turn #1 without being logged
INSTALL_TURN_OFFSET = int(os.getenv("INSTALL_TURN_OFFSET", "0"))

REMINDER_HOUR = int(os.getenv("REMINDER_HOUR", "9"))
REMINDER_POLL_SECONDS = int(os.getenv("REMINDER_POLL_SECONDS", "30"))
HISTORY_VIEW_LIMIT = int(os.getenv("HISTORY_VIEW_LIMIT", "10"))
