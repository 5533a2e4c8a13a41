import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "timbrio"),
}

# Kiosk QR tokens: lifetime of one displayed code
TOKEN_TTL_SECONDS = int(os.getenv("TOKEN_TTL_SECONDS", "300"))

# Minutes after the scheduled entrata before a punch counts as late
LATE_TOLERANCE_MINUTES = int(os.getenv("LATE_TOLERANCE_MINUTES", "5"))

# Overtime baseline for employees without a configured shift
DEFAULT_SCHEDULED_HOURS = float(os.getenv("DEFAULT_SCHEDULED_HOURS", "8.0"))

DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
