import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "timbrio_test"),
}

TOKEN_TTL_SECONDS = 300
LATE_TOLERANCE_MINUTES = 5
DEFAULT_SCHEDULED_HOURS = 8.0

DEBUG = False
TESTING = True

AUTO_INIT_DB = False
