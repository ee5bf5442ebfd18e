import os
import tempfile

# Settings and the engine are built at import time; point them at a
# throwaway SQLite file before any test module imports the package.
_TEST_DIR = tempfile.mkdtemp(prefix="accreditation_portal_tests_")
os.environ.setdefault("DATABASE_URL", f"sqlite+pysqlite:///{os.path.join(_TEST_DIR, 'portal.db')}")
os.environ.setdefault("AUTO_CREATE_DB", "true")
os.environ.setdefault("AUTO_RUN_MIGRATIONS", "false")
os.environ.setdefault("PORTAL_ENV", "dev")
os.environ.setdefault("PORTAL_AUTH_DISABLED", "true")
os.environ.setdefault("PORTAL_TIMEZONE", "Asia/Qatar")
