"""テスト共通フィクスチャ"""

import pytest
from fastapi.testclient import TestClient

from main import app
from services.storage import (
    LocalConfig,
    LocalContentStore,
    MemoryLocationRegistry,
    StorageService,
    get_storage,
)

MAX_UPLOAD_SIZE = 10 << 20


@pytest.fixture
def local_store(tmp_path):
    """tmp_path配下のローカルストア"""
    return LocalContentStore(LocalConfig(base_path=str(tmp_path)))


@pytest.fixture
def memory_registry():
    return MemoryLocationRegistry()


@pytest.fixture
def storage(memory_registry, local_store):
    """インメモリレジストリ + ローカルストアのStorageService"""
    return StorageService(memory_registry, local_store, max_upload_size=MAX_UPLOAD_SIZE)


@pytest.fixture
def client(storage):
    """StorageServiceを差し替えたTestClient"""
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()
