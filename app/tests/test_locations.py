"""ロケーションレジストリのテスト"""

import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool
from unittest.mock import patch

from services.storage import MemoryLocationRegistry, SqlLocationRegistry
from services.storage.exceptions import NotFoundError, RegistryError


@pytest.fixture
def sql_registry():
    """インメモリSQLiteのレジストリ"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return SqlLocationRegistry(engine=engine)


@pytest.fixture(params=["memory", "sql"])
def registry(request, sql_registry):
    if request.param == "memory":
        return MemoryLocationRegistry()
    return sql_registry


class TestLocationRegistry:
    """両実装共通の振る舞い"""

    def test_save_then_exists(self, registry):
        """保存後はexistsがTrue"""
        assert registry.exists(1) is False
        registry.save_path(1, "test/path")
        assert registry.exists(1) is True

    def test_get_path(self, registry):
        """保存したパスを取得できる"""
        registry.save_path(1, "test/path")
        assert registry.get_path(1) == "test/path"

    def test_get_path_not_found(self, registry):
        """未登録IDはNotFoundError"""
        registry.save_path(1, "test/path")
        with pytest.raises(NotFoundError):
            registry.get_path(2)

    def test_overwrite(self, registry):
        """save_pathは既存の対応を上書きする"""
        registry.save_path(1, "test/path")
        registry.save_path(1, "new/test/path")
        assert registry.get_path(1) == "new/test/path"

    def test_int64_bounds(self, registry):
        """64bit整数の両端を保存できる"""
        registry.save_path(2 ** 63 - 1, "max")
        registry.save_path(-(2 ** 63), "min")
        assert registry.get_path(2 ** 63 - 1) == "max"
        assert registry.get_path(-(2 ** 63)) == "min"


class TestMemoryLocationRegistry:

    def test_concurrent_saves_distinct_ids(self):
        """異なるIDへの並行書き込みは独立"""
        registry = MemoryLocationRegistry()

        def worker(start):
            for i in range(start, start + 100):
                registry.save_path(i, f"path/{i}")

        threads = [threading.Thread(target=worker, args=(n * 100,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 800
        assert registry.get_path(799) == "path/799"

    def test_mode(self):
        assert MemoryLocationRegistry.mode == "memory"


class TestSqlLocationRegistry:

    def test_persists_across_instances(self, tmp_path):
        """同じDBを使う別インスタンスから参照できる"""
        url = f"sqlite:///{tmp_path / 'locations.db'}"
        first = SqlLocationRegistry(engine=create_engine(url))
        first.save_path(42, "/data/files/42/a.txt")

        second = SqlLocationRegistry(engine=create_engine(url))
        assert second.exists(42) is True
        assert second.get_path(42) == "/data/files/42/a.txt"

    def test_storage_error_is_registry_error(self, sql_registry):
        """DBエラーはRegistryErrorに変換される"""
        with patch.object(
            sql_registry, "_session_factory",
            side_effect=OperationalError("SELECT", {}, Exception("db down"))
        ):
            with pytest.raises(RegistryError):
                sql_registry.exists(1)
            with pytest.raises(RegistryError):
                sql_registry.save_path(1, "x")
            with pytest.raises(RegistryError):
                sql_registry.get_path(1)

    def test_mode(self):
        assert SqlLocationRegistry.mode == "sql"
