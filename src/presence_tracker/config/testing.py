import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "presence_db_test"),
}

DB_CONNECT_TIMEOUT = 5
DB_STATEMENT_TIMEOUT_MS = 5000
DB_LOCK_WAIT_TIMEOUT = 5

UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "/tmp/presence-tracker-test-uploads")
MAX_PHOTO_BYTES = 2 * 1024 * 1024

TOKEN_MAX_AGE = 3600
DEFAULT_PER_PAGE = 15

LOG_LEVEL = "WARNING"

DEBUG = False
TESTING = True

AUTO_INIT_DB = False
AUTO_SEED_DB = False
