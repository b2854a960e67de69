import os

# Settings are read at import time by the service modules.
os.environ.setdefault("ADMIN_API_KEY", "test-api-key")
os.environ.setdefault("ENVIRONMENT", "local")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("INCOMPLETE_DATA_POLICY", "omit")
