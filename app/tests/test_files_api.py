"""ファイルAPIのテスト

テスト対象:
- POST /file
- GET /file/{id}
- GET /storage/info
"""

import asyncio
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from api.route.files import limit_request_body
from main import app
from services.storage import StorageService, get_storage
from services.storage.exceptions import RegistryError, UploadTooLargeError

PNG_CONTENT = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + b"\x00" * 64


def post_file(client, document_id, filename, content):
    return client.post(
        "/file",
        data={"Id": str(document_id)},
        files={"uploadFile": (filename, content)},
    )


def multipart_chunks(document_id, filename, content, boundary="testboundary", chunk_size=65536):
    """Content-Lengthを付けずに送るためのマルチパートボディ（ジェネレータ）"""
    yield (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="Id"\r\n\r\n{document_id}\r\n'
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="uploadFile"; filename="{filename}"\r\n'
        "Content-Type: application/octet-stream\r\n\r\n"
    ).encode()
    for i in range(0, len(content), chunk_size):
        yield content[i:i + chunk_size]
    yield f"\r\n--{boundary}--\r\n".encode()


def post_chunked_file(client, document_id, filename, content):
    return client.post(
        "/file",
        content=multipart_chunks(document_id, filename, content),
        headers={"Content-Type": "multipart/form-data; boundary=testboundary"},
    )


# ==================== POST /file Tests ====================

class TestUploadFile:
    """POST /file のテスト"""

    def test_upload_success(self, client):
        """正常系: 201を返す"""
        response = post_file(client, 1, "a.txt", b"hello")

        assert response.status_code == 201
        assert response.json() == {"message": "File stored successfully", "id": 1}

    def test_upload_duplicate_id(self, client):
        """異常系: 同じIDは400"""
        post_file(client, 1, "a.txt", b"hello")
        response = post_file(client, 1, "b.txt", b"world")

        assert response.status_code == 400
        assert "already exists" in response.json()["detail"]

    def test_upload_non_integer_id(self, client):
        """異常系: Idが整数でない"""
        response = post_file(client, "abc", "a.txt", b"hello")

        assert response.status_code == 400
        assert response.json()["detail"] == "Id must be an integer."

    def test_upload_missing_id(self, client):
        response = client.post("/file", files={"uploadFile": ("a.txt", b"hello")})

        assert response.status_code == 400
        assert response.json()["detail"] == "Id must be an integer."

    def test_upload_missing_file(self, client):
        """異常系: uploadFileが無い"""
        response = client.post("/file", data={"Id": "1"})

        assert response.status_code == 400
        assert response.json()["detail"] == "could not read uploaded file."

    def test_upload_too_large(self, memory_registry, local_store):
        """異常系: 上限超過は400、ファイルは作られない"""
        storage = StorageService(memory_registry, local_store, max_upload_size=1024)
        app.dependency_overrides[get_storage] = lambda: storage
        try:
            client = TestClient(app)
            response = post_file(client, 1, "big.bin", b"x" * 4096)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 400
        assert "too big" in response.json()["detail"]
        assert memory_registry.exists(1) is False
        assert not local_store.files_path.exists()

    def test_upload_out_of_range_id(self, client):
        """int64範囲外のIdは整数でないIdと同じメッセージ"""
        response = post_file(client, 2 ** 63, "a.txt", b"hello")

        assert response.status_code == 400
        assert response.json()["detail"] == "Id must be an integer."

    def test_chunked_upload_without_content_length(self, client):
        """Content-Length無しのチャンク転送でも保存できる"""
        response = post_chunked_file(client, 4, "a.txt", b"hello chunked")

        assert response.status_code == 201
        assert client.get("/file/4").content == b"hello chunked"

    def test_chunked_upload_too_large(self, memory_registry, local_store):
        """異常系: Content-Length無しでも上限超過は400、ファイルは作られない"""
        storage = StorageService(memory_registry, local_store, max_upload_size=1024)
        app.dependency_overrides[get_storage] = lambda: storage
        try:
            client = TestClient(app)
            response = post_chunked_file(client, 1, "big.bin", b"x" * (4 << 20))
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 400
        assert response.json()["detail"] == (
            "The uploaded file is too big. Maximum file size is 1024 bytes."
        )
        assert memory_registry.exists(1) is False
        assert not local_store.files_path.exists()

    def test_upload_registry_failure(self, local_store):
        """異常系: 登録失敗は500、詳細は返さない"""
        registry = MagicMock()
        registry.exists.return_value = False
        registry.save_path.side_effect = RegistryError("db down")
        app.dependency_overrides[get_storage] = lambda: StorageService(registry, local_store)
        try:
            response = post_file(TestClient(app), 1, "a.txt", b"hello")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"
        assert not (local_store.files_path / "1" / "a.txt").exists()


# ==================== GET /file/{id} Tests ====================

class TestGetFile:
    """GET /file/{id} のテスト"""

    def test_get_text_file(self, client):
        """正常系: 内容・Content-Type・Content-Dispositionを返す"""
        post_file(client, 1, "a.txt", b"hello")

        response = client.get("/file/1")

        assert response.status_code == 200
        assert response.content == b"hello"
        assert response.headers["content-type"] == "text/plain; charset=utf-8"
        assert response.headers["content-disposition"] == "attachment; filename=a.txt"

    def test_get_png_file(self, client):
        post_file(client, 7, "picture", PNG_CONTENT)

        response = client.get("/file/7")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content == PNG_CONTENT

    def test_get_repeatedly(self, client):
        post_file(client, 1, "a.txt", b"hello")
        for _ in range(3):
            assert client.get("/file/1").content == b"hello"

    def test_get_not_found(self, client):
        """異常系: 未登録IDは404"""
        response = client.get("/file/2")

        assert response.status_code == 404

    @pytest.mark.parametrize("bad_id", ["abc", "1.5", "0x10", "9223372036854775808"])
    def test_get_invalid_id(self, client, bad_id):
        """異常系: 整数でないIDは400"""
        response = client.get(f"/file/{bad_id}")

        assert response.status_code == 400
        assert response.json()["detail"] == "id param type is invalid"

    def test_get_unreachable_content(self, client, storage):
        """異常系: ファイルが消えていれば500"""
        post_file(client, 1, "a.txt", b"hello")
        location = storage.registry.get_path(1)
        storage.store.delete(location)

        response = client.get("/file/1")

        assert response.status_code == 500

    def test_non_ascii_filename(self, client):
        post_file(client, 3, "資料.txt", b"hello")

        response = client.get("/file/3")

        assert response.status_code == 200
        assert response.headers["content-disposition"] == (
            "attachment; filename*=UTF-8''%E8%B3%87%E6%96%99.txt"
        )


# ==================== Scenario ====================

def test_upload_get_scenario(client):
    """アップロード → 取得 → 重複 → 未登録 の一連の流れ"""
    assert post_file(client, 1, "a.txt", b"hello").status_code == 201

    response = client.get("/file/1")
    assert response.status_code == 200
    assert response.content == b"hello"
    assert response.headers["content-type"] == "text/plain; charset=utf-8"
    assert response.headers["content-disposition"] == "attachment; filename=a.txt"

    assert post_file(client, 1, "b.txt", b"world").status_code == 400
    assert client.get("/file/2").status_code == 404


# ==================== GET /storage/info Tests ====================

class TestStorageInfo:

    def test_info_local(self, client, local_store):
        response = client.get("/storage/info")

        assert response.status_code == 200
        data = response.json()
        assert data["mode"] == "local"
        assert data["registry_mode"] == "memory"
        assert data["local_path"] == str(local_store.files_path)
        assert data["bucket_name"] is None
        assert data["max_upload_size"] == 10 << 20
        assert "s3" in data["available_modes"]
        assert "sql" in data["available_registry_modes"]

    def test_request_id_header(self, client):
        response = client.get("/storage/info", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"



# ==================== Request body limit ====================

class TestLimitRequestBody:

    @staticmethod
    def chunked_request(chunk_size):
        pulled = []

        async def receive():
            pulled.append(chunk_size)
            return {"type": "http.request", "body": b"x" * chunk_size, "more_body": True}

        scope = {"type": "http", "method": "POST", "path": "/file", "headers": []}
        return Request(scope, receive), pulled

    def test_stops_reading_once_limit_exceeded(self):
        """上限を超えたチャンクの時点で読み込みを止める"""
        request, pulled = self.chunked_request(1024)
        limited = limit_request_body(request, 4096)

        async def consume():
            async for _ in limited.stream():
                pass

        with pytest.raises(UploadTooLargeError):
            asyncio.run(consume())
        assert sum(pulled) == 5 * 1024

    def test_passes_body_within_limit(self):
        async def receive():
            return {"type": "http.request", "body": b"hello", "more_body": False}

        request = Request({"type": "http", "method": "POST", "headers": []}, receive)

        assert asyncio.run(limit_request_body(request, 5).body()) == b"hello"
