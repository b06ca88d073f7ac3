import os

db_url = os.environ.get("DB_URL", "sqlite://:memory:")
generate_schemas = os.environ.get("GENERATE_SCHEMAS", "false").lower() == "true"
users_ms_url = os.environ.get("USERS_MS_URL", "http://localhost:8000")
notifications_ms_url = os.environ.get("NOTIFICATIONS_MS_URL", "http://localhost:8005")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

invoice_number_prefix = os.environ.get("INVOICE_NUMBER_PREFIX", "INV")
brand_name = os.environ.get("BRAND_NAME", "Home Bonzenga")
currency = os.environ.get("CURRENCY", "USD")
