import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

_DB_PATH = Path(tempfile.mkdtemp(prefix="rbac-core-tests-")) / "rbac.db"

os.environ.setdefault("RBAC_DATABASE_URL", f"sqlite+aiosqlite:///{_DB_PATH}")
os.environ.setdefault("RBAC_REDIS_URL", "")
os.environ.setdefault("RBAC_REDIS_TOKEN", "")
os.environ.setdefault("RBAC_LOG_JSON", "false")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from rbac_core.core.config import get_settings  # noqa: E402

get_settings.cache_clear()

from rbac_core.core.database import reset_engine  # noqa: E402
from rbac_core.main import create_app  # noqa: E402
from rbac_core.models import Base  # noqa: E402
from rbac_core.services.invalidation import CacheInvalidationSignal, set_invalidation_signal  # noqa: E402
from rbac_core.services.resolver import set_permission_resolver  # noqa: E402

# Schema management runs on a plain sync engine so it never shares an event loop with the tests.
schema_engine = create_engine(f"sqlite:///{_DB_PATH}")


@pytest.fixture(autouse=True)
def reset_database():
    reset_engine()
    Base.metadata.drop_all(bind=schema_engine)
    Base.metadata.create_all(bind=schema_engine)
    set_invalidation_signal(CacheInvalidationSignal(poll_interval=0))
    set_permission_resolver(None)
    yield
    set_permission_resolver(None)
    set_invalidation_signal(None)
    Base.metadata.drop_all(bind=schema_engine)


@pytest.fixture()
def client() -> TestClient:  # noqa: ANN001
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
