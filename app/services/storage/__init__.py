"""Storage Module - ドキュメントストレージサービス

クライアント指定のIDにファイルを紐付けて保存し、IDでバイト列とMIMEタイプを取得する。
ロケーションレジストリ（ID → ロケーション）とコンテンツストア（バイト列）を
StorageService が組み合わせ、両者の整合性を保つ。
"""

from .config import StorageConfig, S3Config, LocalConfig, RegistryConfig
from .registry import BackendRegistry, CONTENT_STORE, LOCATION_REGISTRY
from .backends import ContentStore, LocalContentStore, S3ContentStore
from .locations import LocationRegistry, MemoryLocationRegistry, SqlLocationRegistry
from .models import UploadData, StoredDocument
from .mime import detect_content_type, detect_stream_content_type
from .service import StorageService, build_storage, get_storage, reset_storage

__all__ = [
    'StorageConfig',
    'S3Config',
    'LocalConfig',
    'RegistryConfig',
    'BackendRegistry',
    'CONTENT_STORE',
    'LOCATION_REGISTRY',
    'ContentStore',
    'LocalContentStore',
    'S3ContentStore',
    'LocationRegistry',
    'MemoryLocationRegistry',
    'SqlLocationRegistry',
    'UploadData',
    'StoredDocument',
    'detect_content_type',
    'detect_stream_content_type',
    'StorageService',
    'build_storage',
    'get_storage',
    'reset_storage'
]

__version__ = '1.0.0'
