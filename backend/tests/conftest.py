import os

# Settings are instantiated at import time; tests never need a real secret or DSN.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
