import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "timbrio"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "timbrio"),
    "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", "5")),
}

TOKEN_TTL_SECONDS = int(os.getenv("TOKEN_TTL_SECONDS", "300"))
LATE_TOLERANCE_MINUTES = int(os.getenv("LATE_TOLERANCE_MINUTES", "5"))
DEFAULT_SCHEDULED_HOURS = float(os.getenv("DEFAULT_SCHEDULED_HOURS", "8.0"))

DEBUG = False

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
