import os

try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # dotenv is optional for production, but useful locally

class Settings:
    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")

    # --- Redis (Celery broker) ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # --- Cron trigger ---
    CRON_SECRET = os.environ.get("CRON_SECRET")

    # --- Stream (squad chat) ---
    STREAM_API_KEY = os.environ.get("STREAM_API_KEY")
    STREAM_API_SECRET = os.environ.get("STREAM_API_SECRET")
    SYSTEM_BOT_USER_ID = os.environ.get("SYSTEM_BOT_USER_ID", "squad-bot")
    SYSTEM_BOT_NAME = os.environ.get("SYSTEM_BOT_NAME", "Squad Bot")

    # --- Telnyx (SMS fan-out) ---
    TELNYX_API_KEY = os.environ.get("TELNYX_API_KEY")
    TELNYX_FROM_NUMBER = os.environ.get("TELNYX_FROM_NUMBER")

    APP_BASE_URL = os.environ.get("APP_BASE_URL", "https://app.example.com")

    # --- SMTP (call emails) ---
    SMTP_HOST = os.environ.get("SMTP_HOST")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USER = os.environ.get("SMTP_USER")
    SMTP_PASS = os.environ.get("SMTP_PASS")
    SMTP_USE_TLS = os.environ.get("SMTP_USE_TLS", "true").lower() not in ("0", "false", "no")
    EMAIL_FROM = os.environ.get("EMAIL_FROM")

    # --- Scheduling ---
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "UTC")
    MORNING_NOTIFICATION_HOUR = int(os.environ.get("MORNING_NOTIFICATION_HOUR", "7"))
    EVENING_NOTIFICATION_HOUR = int(os.environ.get("EVENING_NOTIFICATION_HOUR", "17"))
    WEEKEND_NOTIFICATION_HOUR = int(os.environ.get("WEEKEND_NOTIFICATION_HOUR", "9"))

    # --- Batch limits ---
    USER_BATCH_SIZE = int(os.environ.get("USER_BATCH_SIZE", "500"))
    REMINDER_BATCH_SIZE = int(os.environ.get("REMINDER_BATCH_SIZE", "50"))
    CALL_JOB_BATCH_SIZE = int(os.environ.get("CALL_JOB_BATCH_SIZE", "100"))
    REMINDER_MAX_ATTEMPTS = int(os.environ.get("REMINDER_MAX_ATTEMPTS", "5"))
    REMINDER_MAX_AGE_HOURS = int(os.environ.get("REMINDER_MAX_AGE_HOURS", "24"))

settings = Settings()
