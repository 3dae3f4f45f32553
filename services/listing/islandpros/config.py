import os

DB_USER = os.getenv("DB_USER", "islandpros")
DB_PASS = os.getenv("DB_PASS", "islandpros")
DB_NAME = os.getenv("DB_NAME", "virgin_islands_providers")
DB_HOST = os.getenv("DB_HOST", "postgres")
DB_PORT = os.getenv("DB_PORT", "5432")

DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"postgresql+psycopg2://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

# Admin surface (key compared verbatim against the x-admin-key header)
ADMIN_KEY = os.getenv("ADMIN_KEY", "dev-admin-key-change-me")

# Used only when app_settings has no emergency_mode row yet
EMERGENCY_MODE_DEFAULT = os.getenv("EMERGENCY_MODE_DEFAULT", "false").lower() in ("1", "true", "yes")

# Listing
LISTING_DEFAULT_LIMIT = int(os.getenv("LISTING_DEFAULT_LIMIT", "20"))
LISTING_MAX_LIMIT = int(os.getenv("LISTING_MAX_LIMIT", "50"))

# Verification / decay
VERIFICATION_MIN_ACCOUNT_AGE_DAYS = int(os.getenv("VERIFICATION_MIN_ACCOUNT_AGE_DAYS", "14"))
VERIFICATION_MIN_ACTIVE_DAYS = int(os.getenv("VERIFICATION_MIN_ACTIVE_DAYS", "5"))
DECAY_WINDOW_DAYS = int(os.getenv("DECAY_WINDOW_DAYS", "30"))

# Registration and lifecycle
TRIAL_DAYS = int(os.getenv("TRIAL_DAYS", "30"))
LIFECYCLE_ACTIVE_DAYS = int(os.getenv("LIFECYCLE_ACTIVE_DAYS", "30"))
LIFECYCLE_INACTIVE_DAYS = int(os.getenv("LIFECYCLE_INACTIVE_DAYS", "90"))

# Scheduled sweep
SWEEP_ENABLED = os.getenv("SWEEP_ENABLED", "true").lower() in ("1", "true", "yes")
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "21600"))  # 6h

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
