"""ローカルファイルシステムコンテンツストア

<base_path>/files/<id>/<filename> にファイルを保存する。
ID単位のディレクトリに保存するため、同名ファイルを別IDで
アップロードしても互いに上書きしない。
"""

import logging
import shutil
from pathlib import Path
from typing import BinaryIO

from ..registry import BackendRegistry, CONTENT_STORE
from ..config import LocalConfig
from ..exceptions import ContentNotFoundError, ContentStoreError
from .base import ContentStore, COPY_CHUNK_SIZE

logger = logging.getLogger(__name__)

FILES_DIR = "files"


@BackendRegistry.register(CONTENT_STORE, "local")
class LocalContentStore(ContentStore):
    """ローカルファイルシステムコンテンツストア"""

    def __init__(self, config: LocalConfig = None):
        """
        ローカルストアを初期化

        Args:
            config: ローカル設定。Noneの場合は環境変数から読み込み
        """
        if config is None:
            config = LocalConfig.from_env()

        self.base_path = Path(config.base_path).resolve()
        self.files_path = self.base_path / FILES_DIR
        logger.info(f"LocalContentStore initialized: path={self.files_path}")

    def _get_full_path(self, document_id: int, filename: str) -> Path:
        """ID・ファイル名からフルパスに変換"""
        return self.files_path / str(document_id) / self.safe_filename(filename)

    def store(self, document_id: int, filename: str, stream: BinaryIO) -> str:
        full_path = self._get_full_path(document_id, filename)
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ContentStoreError(f"failed to create directory: {e}") from e

        try:
            dst = open(full_path, 'wb')
        except OSError as e:
            raise ContentStoreError(f"failed to create file: {e}") from e

        try:
            with dst:
                shutil.copyfileobj(stream, dst, COPY_CHUNK_SIZE)
        except OSError as e:
            self._remove(full_path)
            raise ContentStoreError(f"failed to write to file: {e}") from e

        logger.debug(f"Local store success: {full_path}")
        return str(full_path)

    def open(self, location: str) -> BinaryIO:
        try:
            return open(location, 'rb')
        except FileNotFoundError as e:
            raise ContentNotFoundError(f"no content at {location}") from e
        except OSError as e:
            raise ContentStoreError(f"failed to open {location}: {e}") from e

    def exists(self, location: str) -> bool:
        path = Path(location)
        return path.exists() and path.is_file()

    def delete(self, location: str) -> bool:
        return self._remove(Path(location))

    def _remove(self, path: Path) -> bool:
        try:
            if path.exists():
                path.unlink()
            # 空になったIDディレクトリも削除
            parent = path.parent
            if parent.parent == self.files_path and parent.exists() and not any(parent.iterdir()):
                parent.rmdir()
            return True
        except OSError as e:
            logger.error(f"Local delete failed: {path} - {e}")
            return False
