"""インメモリロケーションレジストリ

プロセス内の辞書で対応を保持する。再起動で消える。
"""

import logging
import threading
from typing import Dict

from ..registry import BackendRegistry, LOCATION_REGISTRY
from ..exceptions import NotFoundError
from .base import LocationRegistry

logger = logging.getLogger(__name__)


@BackendRegistry.register(LOCATION_REGISTRY, "memory")
class MemoryLocationRegistry(LocationRegistry):
    """辞書ベースのロケーションレジストリ"""

    def __init__(self, config=None):
        self._paths: Dict[int, str] = {}
        self._lock = threading.Lock()

    def exists(self, document_id: int) -> bool:
        with self._lock:
            return document_id in self._paths

    def save_path(self, document_id: int, location: str) -> None:
        with self._lock:
            self._paths[document_id] = location
        logger.debug(f"Saved path for id {document_id}: {location}")

    def get_path(self, document_id: int) -> str:
        with self._lock:
            location = self._paths.get(document_id)
        if location is None:
            raise NotFoundError(f"path with id {document_id} not found")
        return location

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)
