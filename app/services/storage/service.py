"""統合ストレージサービス

ロケーションレジストリとコンテンツストアを組み合わせ、
アップロード・取得を提供する。

- upload: 重複チェック → コンテンツ保存 → ロケーション登録
  （登録失敗時は保存済みコンテンツを削除する補償処理を同期実行）
- get: ロケーション解決 → 存在再確認 → オープン → MIME判定
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Tuple

from .config import StorageConfig
from .registry import BackendRegistry, CONTENT_STORE, LOCATION_REGISTRY
from .backends.base import ContentStore
from .locations.base import LocationRegistry
from .exceptions import (
    AlreadyExistsError,
    InternalError,
    InvalidInputError,
    StorageError,
    UnreachableContentError,
    UploadTooLargeError,
)
from .mime import detect_stream_content_type
from .models import INT64_MAX, INT64_MIN, StoredDocument, UploadData

logger = logging.getLogger(__name__)


class IdentifierLocks:
    """ID単位のロックテーブル

    使用中のIDだけロックを保持し、解放後は参照カウントが0になった時点で破棄する。
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, Tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, document_id: int) -> Iterator[None]:
        with self._guard:
            lock, refs = self._locks.get(document_id, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[document_id] = (lock, refs + 1)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                _, refs = self._locks[document_id]
                if refs <= 1:
                    del self._locks[document_id]
                else:
                    self._locks[document_id] = (lock, refs - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class StorageService:
    """
    統合ストレージサービス

    レジストリとストアは明示的に渡す。環境変数から組み立てる場合は
    build_storage() / get_storage() を使用する。
    """

    def __init__(
        self,
        registry: LocationRegistry,
        store: ContentStore,
        max_upload_size: Optional[int] = None,
    ):
        self._registry = registry
        self._store = store
        self._locks = IdentifierLocks()
        self.max_upload_size = max_upload_size

    @property
    def registry(self) -> LocationRegistry:
        """ロケーションレジストリを取得"""
        return self._registry

    @property
    def store(self) -> ContentStore:
        """コンテンツストアを取得"""
        return self._store

    # --- 書き込み系メソッド ---

    def upload(self, data: UploadData) -> str:
        """
        ドキュメントをアップロードする

        同一IDの「存在確認 → 保存 → 登録」はIDロックで直列化される。

        Args:
            data: アップロード要求

        Returns:
            str: 登録されたロケーション

        Raises:
            InvalidInputError: ID範囲外・ファイル名不正・サイズ超過
            AlreadyExistsError: IDが登録済み
            InternalError: コンテンツ保存失敗
            RegistryError: ロケーション登録失敗（保存済みコンテンツは削除済み）
        """
        self._check_id(data.id)
        self.check_upload_size(data.size)

        with self._locks.hold(data.id):
            try:
                already_exists = self._registry.exists(data.id)
            except StorageError as e:
                logger.error(f"Failed to check if ID exists: {e}")
                raise
            if already_exists:
                raise AlreadyExistsError(data.id)

            try:
                location = self._store.store(data.id, data.filename, data.file)
            except InvalidInputError:
                raise
            except (StorageError, OSError) as e:
                logger.error(f"Failed to store file for id {data.id}: {e}")
                raise InternalError("error storing the file") from e

            try:
                self._registry.save_path(data.id, location)
            except StorageError as e:
                logger.error(f"Failed to save path for id {data.id}: {e}")
                self._rollback(data.id, location)
                raise

        logger.info(f"Stored file for id {data.id} at {location}")
        return location

    def _rollback(self, document_id: int, location: str) -> None:
        """登録失敗時の補償処理（ベストエフォート）"""
        if self._store.delete(location):
            logger.info(f"Rolled back content for id {document_id}: {location}")
        else:
            logger.error(f"Rollback failed, orphaned content for id {document_id}: {location}")

    # --- 読み取り系メソッド ---

    def get(self, document_id: int) -> StoredDocument:
        """
        ドキュメントを取得する

        Args:
            document_id: ドキュメントID

        Returns:
            StoredDocument: 先頭位置のストリームとMIMEタイプ（呼び出し側がclose）

        Raises:
            NotFoundError: IDが未登録
            UnreachableContentError: 登録済みロケーションにコンテンツが無い
            InternalError: 存在確認・オープン・MIME判定の失敗
        """
        self._check_id(document_id)
        location = self._registry.get_path(document_id)

        try:
            reachable = self._store.exists(location)
        except StorageError as e:
            logger.error(f"Failed to check content for id {document_id}: {e}")
            raise InternalError(f"failed to check file with ID {document_id}") from e
        if not reachable:
            logger.error(f"File with ID {document_id} not found in path {location}")
            raise UnreachableContentError(document_id)

        try:
            stream = self._store.open(location)
        except StorageError as e:
            logger.error(f"Failed to open file {document_id}: {e}")
            raise InternalError(f"failed to open file with ID {document_id}") from e

        try:
            content_type = detect_stream_content_type(stream)
        except OSError as e:
            stream.close()
            logger.error(f"Failed to determine content type for id {document_id}: {e}")
            raise InternalError(f"failed to determine content type for ID {document_id}") from e

        return StoredDocument(
            id=document_id,
            filename=ContentStore.filename_of(location),
            location=location,
            content_type=content_type,
            stream=stream,
        )

    # --- ユーティリティ ---

    def check_upload_size(self, size: Optional[int]) -> None:
        """サイズ上限チェック（サイズ不明・上限未設定の場合は何もしない）"""
        if size is None or self.max_upload_size is None:
            return
        if size > self.max_upload_size:
            raise UploadTooLargeError(self.max_upload_size)

    @staticmethod
    def _check_id(document_id: int) -> None:
        if isinstance(document_id, bool) or not isinstance(document_id, int):
            raise InvalidInputError("Id must be an integer.")
        if not INT64_MIN <= document_id <= INT64_MAX:
            raise InvalidInputError("Id must be an integer.")


def build_storage(config: Optional[StorageConfig] = None) -> StorageService:
    """設定からレジストリとストアを組み立ててStorageServiceを生成"""
    config = config or StorageConfig.from_env()

    store_class = BackendRegistry.get(CONTENT_STORE, config.mode)
    registry_class = BackendRegistry.get(LOCATION_REGISTRY, config.registry.mode)

    service = StorageService(
        registry=registry_class(config.registry),
        store=store_class(config.get_backend_config()),
        max_upload_size=config.max_upload_size,
    )
    logger.info(
        f"StorageService initialized: mode={config.mode}, registry={config.registry.mode}"
    )
    return service


_storage: Optional[StorageService] = None
_storage_lock = threading.Lock()


def get_storage() -> StorageService:
    """StorageServiceの共有インスタンスを取得（初回呼び出し時に生成）"""
    global _storage
    with _storage_lock:
        if _storage is None:
            _storage = build_storage()
        return _storage


def reset_storage() -> None:
    """
    共有インスタンスをリセット（テスト用）

    注意: 本番環境では使用しないこと
    """
    global _storage
    with _storage_lock:
        _storage = None
