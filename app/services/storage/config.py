"""ストレージ設定クラス

環境変数からの設定読み込みを一元管理。
"""

from dataclasses import dataclass, field
from typing import Optional
import os

from .exceptions import StorageConfigError

# 10MB
DEFAULT_MAX_UPLOAD_SIZE = 10 << 20


def _project_root() -> str:
    return os.getenv('PROJECT_ROOT') or os.getcwd()


@dataclass
class S3Config:
    """S3固有設定"""
    bucket_name: str = "dms-storage"
    prefix: str = "files"
    endpoint_url: Optional[str] = None
    region: str = "ap-northeast-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'S3Config':
        """環境変数から設定を読み込み"""
        return cls(
            bucket_name=os.getenv('S3_BUCKET_NAME', 'dms-storage'),
            prefix=os.getenv('S3_PREFIX', 'files'),
            endpoint_url=os.getenv('S3_ENDPOINT_URL'),
            region=os.getenv('AWS_DEFAULT_REGION', 'ap-northeast-1'),
            access_key_id=os.getenv('AWS_ACCESS_KEY_ID'),
            secret_access_key=os.getenv('AWS_SECRET_ACCESS_KEY')
        )


@dataclass
class LocalConfig:
    """ローカルストレージ固有設定

    ファイルは <base_path>/files/<id>/<filename> に保存される。
    """
    base_path: str = field(default_factory=_project_root)

    @classmethod
    def from_env(cls) -> 'LocalConfig':
        """環境変数から設定を読み込み"""
        return cls(base_path=_project_root())


@dataclass
class RegistryConfig:
    """ロケーションレジストリ設定"""
    mode: str = "memory"
    database_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'RegistryConfig':
        """環境変数から設定を読み込み"""
        database_url = os.getenv('DATABASE_URL')
        if not database_url:
            database_url = f"sqlite:///{os.path.join(_project_root(), 'locations.db')}"
        return cls(
            mode=os.getenv('REGISTRY_MODE', 'memory').lower(),
            database_url=database_url
        )


@dataclass
class StorageConfig:
    """統合ストレージ設定"""
    mode: str = "local"
    max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE
    s3: S3Config = field(default_factory=S3Config)
    local: LocalConfig = field(default_factory=LocalConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)

    @classmethod
    def from_env(cls) -> 'StorageConfig':
        """環境変数から設定を読み込み"""
        return cls(
            mode=os.getenv('STORAGE_MODE', 'local').lower(),
            max_upload_size=_parse_size(os.getenv('MAX_UPLOAD_SIZE')),
            s3=S3Config.from_env(),
            local=LocalConfig.from_env(),
            registry=RegistryConfig.from_env()
        )

    def get_backend_config(self):
        """現在のモードに対応するバックエンド設定を取得"""
        if self.mode == 's3':
            return self.s3
        elif self.mode == 'local':
            return self.local
        return None


def _parse_size(value: Optional[str]) -> int:
    """MAX_UPLOAD_SIZE を解釈（未設定ならデフォルト）"""
    if value is None or value == '':
        return DEFAULT_MAX_UPLOAD_SIZE
    try:
        size = int(value)
    except ValueError:
        raise StorageConfigError(f"MAX_UPLOAD_SIZE must be an integer: {value!r}")
    if size <= 0:
        raise StorageConfigError(f"MAX_UPLOAD_SIZE must be positive: {size}")
    return size
