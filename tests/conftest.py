"""
MES Dashboard — Test Infrastructure (conftest.py)
==================================================
Provides:
  - Scratch data directory (MES_DATA_DIR) with seeded users
  - FastAPI TestClient (session-scoped, startup events fired)
  - Store isolation for unit tests that need the store registry
  - Document helpers for on-disk assertions
"""

import os
import sys
import json
import shutil
import pytest

# Ensure project root is on path
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT_DIR)

# ============================================================================
# TEST MODE: Use a separate data directory
# ============================================================================
TEST_DATA_DIR = os.path.join(ROOT_DIR, "test_data")

os.environ["MES_DATA_DIR"] = TEST_DATA_DIR

TEST_USERS = [
    {"username": "alice", "password": "alice-pw", "role": "operator"},
    {"username": "boss", "password": "boss-pw", "role": "admin"},
]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Session-wide test environment setup."""
    if os.path.exists(TEST_DATA_DIR):
        shutil.rmtree(TEST_DATA_DIR)
    os.makedirs(TEST_DATA_DIR)

    with open(os.path.join(TEST_DATA_DIR, "users.json"), "w", encoding="utf-8") as f:
        json.dump(TEST_USERS, f, indent=2)

    yield

    shutil.rmtree(TEST_DATA_DIR, ignore_errors=True)


@pytest.fixture(scope="session")
def app(setup_test_env):
    """Get the FastAPI app instance."""
    import main
    return main.app


@pytest.fixture(scope="session")
def client(app):
    """FastAPI TestClient (session-scoped for speed)."""
    from starlette.testclient import TestClient
    with TestClient(app) as c:
        yield c


@pytest.fixture
def isolated_stores(tmp_path):
    """Fresh store registry in tmp_path; the app's registry is restored afterwards."""
    from app.store import engine
    saved = dict(engine._stores)
    stores = engine.init_stores(tmp_path)
    yield stores
    engine._stores.clear()
    engine._stores.update(saved)


# ============================================================================
# Helpers
# ============================================================================

def read_document(name):
    """Read a persisted document from the test data directory."""
    with open(os.path.join(TEST_DATA_DIR, name), "r", encoding="utf-8") as f:
        return json.load(f)


def find_by_id(records, entity_id):
    for r in records:
        if r.get("id") == entity_id:
            return r
    return None


class FakeWebSocket:
    """Records what the broadcaster sends; send failures can be forced."""

    def __init__(self, fail=False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def types(self):
        return [m["type"] for m in self.sent]
