import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file)
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./tryon.db")
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    API_RELOAD = data.get("API_RELOAD", False)
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    AUTH_DISABLED = bool(data.get("AUTH_DISABLED", False))
    ADMIN_API_TOKEN = data.get("ADMIN_API_TOKEN", "")
    ENABLE_LOGGING_MIDDLEWARE = bool(data.get("ENABLE_LOGGING_MIDDLEWARE", 1))
    ENABLE_SENTRY = data.get("ENABLE_SENTRY", 0)
    DSN_SENTRY = data.get("DSN_SENTRY", "")
    SENTRY_ENVIRONMENT = data.get("SENTRY_ENVIRONMENT", "dev")

    # Identity (Supabase Auth issued JWTs)
    SUPABASE_URL = data.get("SUPABASE_URL", "")
    SUPABASE_JWT_AUDIENCE = data.get("SUPABASE_JWT_AUDIENCE", "authenticated")
    SUPABASE_JWT_ISSUER = data.get("SUPABASE_JWT_ISSUER", None)

    # Inference provider (fal.ai queue)
    FAL_KEY = data.get("FAL_KEY", os.environ.get("FAL_KEY", ""))
    FAL_QUEUE_URL = data.get("FAL_QUEUE_URL", "https://queue.fal.run")
    FAL_HTTP_TIMEOUT_SECONDS = data.get("FAL_HTTP_TIMEOUT_SECONDS", 30.0)
    TRYON_MODEL_ID = data.get("TRYON_MODEL_ID", "fal-ai/fashn/tryon/v1.6")
    VIDEO_MODEL_ID = data.get("VIDEO_MODEL_ID", "fal-ai/bytedance/seedance/v1/lite/image-to-video")

    # Credit costs
    DEFAULT_STARTING_CREDITS = data.get("DEFAULT_STARTING_CREDITS", 100)
    TRYON_COST = data.get("TRYON_COST", 10)
    REGENERATION_COST = data.get("REGENERATION_COST", 5)
    VIDEO_COST = data.get("VIDEO_COST", 50)

    # Polling cadence
    POLL_INTERVAL_SECONDS = data.get("POLL_INTERVAL_SECONDS", 5.0)
    TRYON_MAX_POLL_ATTEMPTS = data.get("TRYON_MAX_POLL_ATTEMPTS", 120)  # ~10 minutes
    VIDEO_MAX_POLL_ATTEMPTS = data.get("VIDEO_MAX_POLL_ATTEMPTS", 240)  # ~20 minutes

    # Object storage
    STORAGE_BACKEND = data.get("STORAGE_BACKEND", "local")  # "supabase" or "local"
    SUPABASE_SERVICE_KEY = data.get("SUPABASE_SERVICE_KEY", "")
    RESULTS_BUCKET = data.get("RESULTS_BUCKET", "try-on-results")
    LOCAL_STORAGE_PATH = data.get("LOCAL_STORAGE_PATH", "./storage")
    LOCAL_STORAGE_BASE_URL = data.get("LOCAL_STORAGE_BASE_URL", "http://localhost:8000/files")

    # Stuck Job Recovery
    STUCK_JOB_RECOVERY_ENABLED = bool(data.get("STUCK_JOB_RECOVERY_ENABLED", True))
    STUCK_JOB_GRACE_SECONDS = data.get("STUCK_JOB_GRACE_SECONDS", 300)
    STUCK_JOB_SCAN_INTERVAL_SECONDS = data.get("STUCK_JOB_SCAN_INTERVAL_SECONDS", 600)

    # Wallet Reconciliation
    RECONCILIATION_ENABLED = bool(data.get("RECONCILIATION_ENABLED", True))
    RECONCILIATION_INTERVAL_SECONDS = data.get("RECONCILIATION_INTERVAL_SECONDS", 86400)  # Daily
