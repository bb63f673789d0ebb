"""Constants for Gmail Sender Sweep."""

from pathlib import Path

# --- Config paths ---
CONFIG_DIR = Path.home() / ".gmail-sender-sweep"
CREDENTIALS_PATH = CONFIG_DIR / "credentials.json"
TOKEN_PATH = CONFIG_DIR / "token.json"
WORKBOOK_PATH = CONFIG_DIR / "workbook.db"
ACTION_LOG_PATH = CONFIG_DIR / "action_log.json"

# --- Gmail API ---
# Permanent delete needs the full mail scope, gmail.modify is not enough.
SCOPES = ["https://mail.google.com/"]
PAGE_SIZE = 500  # items per list page while scanning
DETAIL_HEADERS = ["From", "Date"]
UNITS = ("threads", "messages")

# --- Scan budgets ---
EXECUTION_CEILING_SECONDS = 360  # hard limit of the host running a scan
TIME_BUDGET_SECONDS = 300  # must stay below the ceiling
REPORT_MARGIN_SECONDS = 30  # time left needed to build the variation report
MAX_UNITS_PER_RUN = 3000
CHECKPOINT_EVERY = 100
RESUME_INTERVAL_SECONDS = 60

# --- Bulk actions ---
ACTIONS = ("trash", "delete")
BULK_BATCH_SIZE = 100
MAX_ITERATIONS_PER_SENDER = 50
PAUSE_EVERY = 50
PAUSE_SECONDS = 1.0

# --- Workbook ---
CELL_CHAR_LIMIT = 50000
SENDERS_SHEET = "Senders"
PROGRESS_SHEET = "Progress"
KEEPERS_SHEET = "Keepers"
VARIATIONS_SHEET = "Name Variations"
SENDER_HEADERS = ["Name", "Email", "Last Date", "Count", "Name Variations"]
VARIATION_HEADERS = ["Email", "Count", "Variations", "Variation Count"]
KEEPER_HEADERS = ["Email"]
DATE_FORMAT = "%Y-%m-%d %H:%M"
VARIATION_DELIMITER = ", "

# --- Checkpoint ---
COMPLETE_TOKEN = "COMPLETE"
STATUS_INCOMPLETE = "INCOMPLETE"
STATUS_COMPLETE = "COMPLETE"
