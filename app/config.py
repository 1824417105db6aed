from dotenv import load_dotenv
import os


load_dotenv(dotenv_path="credentials.env")

POSTGRES_USER = os.getenv("POSTGRES_USER")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD")
POSTGRES_DB = os.getenv("POSTGRES_DB")
POSTGRES_HOST = os.getenv("POSTGRES_HOST")
POSTGRES_PORT = os.getenv("POSTGRES_PORT")

# Cho phép trỏ thẳng tới một URL khác; thiếu cấu hình Postgres thì dùng sqlite local
if POSTGRES_HOST:
    _DEFAULT_URL = f"postgresql+psycopg2://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}"
else:
    _DEFAULT_URL = "sqlite:///./ledger.db"

DATABASE_URL = os.getenv("DATABASE_URL", _DEFAULT_URL)

# Mọi lời gọi tới storage phải kết thúc hoặc timeout, không được treo
STORAGE_TIMEOUT_SECONDS = float(os.getenv("STORAGE_TIMEOUT_SECONDS", "5"))

# Chỉ lỗi hạ tầng (StorageUnavailable) mới được retry
LEDGER_STORAGE_RETRIES = int(os.getenv("LEDGER_STORAGE_RETRIES", "3"))
LEDGER_RETRY_BACKOFF_SECONDS = float(os.getenv("LEDGER_RETRY_BACKOFF_SECONDS", "0.2"))

DEFAULT_PERIOD_DAYS = int(os.getenv("DEFAULT_PERIOD_DAYS", "30"))
DEFAULT_CLASS_LIMIT = int(os.getenv("DEFAULT_CLASS_LIMIT", "8"))

ENABLE_EXPIRY_JOB = os.getenv("ENABLE_EXPIRY_JOB", "true").lower() in ("1", "true", "yes")

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost,http://localhost:3000,http://localhost:5173").split(",")
    if o.strip()
]
