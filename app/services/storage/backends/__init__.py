"""コンテンツストアバックエンド

インポート時に BackendRegistry へ登録される。
"""

from .base import ContentStore
from .local import LocalContentStore
from .s3 import S3ContentStore

__all__ = [
    'ContentStore',
    'LocalContentStore',
    'S3ContentStore'
]
