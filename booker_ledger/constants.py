APP_NAME = "Booker Ledger"

DATA_DIR = "data"
DB_FILE_NAME = "ledger.db"
DB_PATH_ENV = "BOOKER_LEDGER_DB_PATH"

TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.0.0"

# Connection setup: fixed delay between attempts
CONNECT_ATTEMPTS = 3
CONNECT_DELAY_SECONDS = 1.0

# Lock/busy retry: exponential backoff (base, base*2, ...)
RETRY_ATTEMPTS = 3
RETRY_BASE_DELAY_SECONDS = 1.0
BUSY_TIMEOUT_MS = 5000

HEALTH_DEGRADED_MS = 1000

ORDER_STATUSES = ("pending", "supplied", "completed")

# (minimum achievement %, label), checked top-down
PERFORMANCE_TIERS = (
    (100.0, "excellent"),
    (80.0, "good"),
    (60.0, "average"),
    (40.0, "below-average"),
)
PERFORMANCE_FLOOR = "poor"

TREND_THRESHOLD_PCT = 5.0

# Dashboard
TARGET_MARGIN_PCT = 20.0
MARGIN_HEALTHY_PCT = 25.0
MARGIN_WARNING_PCT = 15.0
RETURN_RATE_WARNING_PCT = 5.0
RETURN_RATE_CRITICAL_PCT = 10.0
TARGET_RISK_PCT = 70.0
TARGET_CRITICAL_PCT = 50.0
TOP_PERFORMERS_LIMIT = 10
RETURN_PRODUCTS_LIMIT = 5
