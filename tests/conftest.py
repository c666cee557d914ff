import pytest

import litedocstore
from litedocstore import Store


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Keep stray .env files and LITEDOCSTORE_* variables out of tests."""
    for name in ("DATA_DIR", "SNAPSHOT_FILENAME", "STRICT_QUERIES", "SNAPSHOT_INDENT"):
        monkeypatch.delenv(f"LITEDOCSTORE_{name}", raising=False)
    monkeypatch.chdir(tmp_path)
    litedocstore.get_settings.cache_clear()
    yield
    litedocstore.get_settings.cache_clear()


@pytest.fixture
def snapshot_path(tmp_path):
    return tmp_path / "data" / "db.json"


@pytest.fixture
async def store(snapshot_path):
    """Fresh store backed by a temporary snapshot."""
    return await Store.open(snapshot_path)
