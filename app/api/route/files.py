"""ファイルAPI

- POST /file: マルチパートフォーム（Id, uploadFile）でアップロード
- GET /file/{id}: IDでファイルを取得（添付ファイルとしてストリーミング）
- GET /storage/info: ストレージ構成情報
"""

import logging
import os
import re
from typing import BinaryIO, Iterator, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.datastructures import UploadFile
from starlette.types import Message

from api.response_model import UploadResponse, StorageInfoResponse
from services.storage import (
    BackendRegistry,
    CONTENT_STORE,
    LOCATION_REGISTRY,
    LocalContentStore,
    S3ContentStore,
    StorageService,
    UploadData,
    get_storage,
)
from services.storage.exceptions import StorageError, UploadTooLargeError
from services.storage.models import INT64_MAX, INT64_MIN

logger = logging.getLogger(__name__)

router = APIRouter()

STREAM_CHUNK_SIZE = 65536

_ID_PATTERN = re.compile(r"^[+-]?\d+$")

_STATUS_BY_KIND = {
    "invalid_input": 400,
    "not_found": 404,
    "internal": 500,
}


# ==================== Utility Functions ====================

def parse_id(value: Optional[str]) -> Optional[int]:
    """10進整数文字列をIDに変換（不正・int64範囲外の場合None）"""
    if value is None or not _ID_PATTERN.match(value):
        return None
    parsed = int(value)
    if not INT64_MIN <= parsed <= INT64_MAX:
        return None
    return parsed


def to_http_exception(e: StorageError) -> HTTPException:
    """ストレージ例外をHTTP例外に変換（内部エラーの詳細は返さない）"""
    status_code = _STATUS_BY_KIND.get(e.kind, 500)
    if status_code == 500:
        return HTTPException(status_code=500, detail="Internal server error")
    return HTTPException(status_code=status_code, detail=str(e))


def content_disposition(filename: str) -> str:
    """Content-Dispositionヘッダ値を生成（非ASCIIはRFC 5987形式）"""
    if filename.isascii():
        return f"attachment; filename={filename}"
    return f"attachment; filename*=UTF-8''{quote(filename)}"


def upload_size(upload_file: UploadFile) -> int:
    """アップロードファイルのサイズを取得"""
    if upload_file.size is not None:
        return upload_file.size
    current = upload_file.file.tell()
    upload_file.file.seek(0, os.SEEK_END)
    size = upload_file.file.tell()
    upload_file.file.seek(current)
    return size


def limit_request_body(request: Request, max_size: Optional[int]) -> Request:
    """
    受信バイト数を数えるリクエストを返す

    上限を超えた時点でUploadTooLargeErrorを送出し、以降のボディは読まない。
    Content-Lengthの無いチャンク転送でも上限が効く。
    """
    received = 0

    async def receive() -> Message:
        nonlocal received
        message = await request.receive()
        if message["type"] == "http.request":
            received += len(message.get("body", b""))
            if max_size is not None and received > max_size:
                raise UploadTooLargeError(max_size)
        return message

    return Request(request.scope, receive)


def iter_stream(stream: BinaryIO, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        yield chunk


# ==================== Endpoints ====================

@router.post("/file", tags=["files"], status_code=201, response_model=UploadResponse)
async def upload_file(
    request: Request,
    storage: StorageService = Depends(get_storage),
):
    """
    ファイルをアップロード

    マルチパートフォーム（Id, uploadFile）を受け取る。
    同じIDで2回目のアップロードは400を返す。
    """
    form = None
    try:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            storage.check_upload_size(int(content_length))

        try:
            form = await limit_request_body(request, storage.max_upload_size).form()
        except StorageError:
            raise
        except Exception as e:
            logger.info(f"Failed to parse upload form: {e}")
            raise HTTPException(status_code=400, detail="could not read uploaded file.")

        document_id = form.get("Id")
        parsed_id = parse_id(document_id if isinstance(document_id, str) else None)
        if parsed_id is None:
            raise HTTPException(status_code=400, detail="Id must be an integer.")
        uploaded = form.get("uploadFile")
        if not isinstance(uploaded, UploadFile) or not uploaded.filename:
            raise HTTPException(status_code=400, detail="could not read uploaded file.")

        data = UploadData(
            id=parsed_id,
            filename=uploaded.filename,
            file=uploaded.file,
            size=upload_size(uploaded),
        )
        await run_in_threadpool(storage.upload, data)
        return UploadResponse(message="File stored successfully", id=parsed_id)

    except UploadTooLargeError as e:
        logger.info(f"Rejected oversized upload: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error in upload_file: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
    finally:
        if form is not None:
            await form.close()


@router.get("/file/{id}", tags=["files"])
def get_file(
    id: str,
    storage: StorageService = Depends(get_storage),
):
    """
    IDでファイルを取得

    Content-Typeは先頭バイトから判定する。
    ストリームはレスポンス送信後にcloseする。
    """
    parsed_id = parse_id(id)
    if parsed_id is None:
        raise HTTPException(status_code=400, detail="id param type is invalid")

    try:
        document = storage.get(parsed_id)
    except StorageError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error in get_file: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    return StreamingResponse(
        iter_stream(document.stream),
        media_type=document.content_type,
        headers={"Content-Disposition": content_disposition(document.filename)},
        background=BackgroundTask(document.close),
    )


@router.get("/storage/info", tags=["storage"], response_model=StorageInfoResponse)
def get_storage_info(storage: StorageService = Depends(get_storage)):
    """現在のストレージ構成を取得"""
    store = storage.store
    registry = storage.registry
    info = StorageInfoResponse(
        mode=store.mode,
        registry_mode=registry.mode,
        max_upload_size=storage.max_upload_size,
        available_modes=BackendRegistry.list_modes(CONTENT_STORE),
        available_registry_modes=BackendRegistry.list_modes(LOCATION_REGISTRY),
    )
    if isinstance(store, LocalContentStore):
        info.local_path = str(store.files_path)
    elif isinstance(store, S3ContentStore):
        info.bucket_name = store.bucket_name
    return info
