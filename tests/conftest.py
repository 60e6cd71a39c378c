# tests/conftest.py
import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Must be set before any service module is imported: engines and the
# rate limiters read these at import / call time.
os.environ["DATABASE_URL"] = "sqlite:///./test_escape_rooms.db"
os.environ["TESTING"] = "1"
os.environ.pop("REDIS_URL", None)
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("LOG_LEVEL", "WARNING")
