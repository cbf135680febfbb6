"""ロケーションレジストリ

インポート時に BackendRegistry へ登録される。
"""

from .base import LocationRegistry
from .memory import MemoryLocationRegistry
from .sql import SqlLocationRegistry

__all__ = [
    'LocationRegistry',
    'MemoryLocationRegistry',
    'SqlLocationRegistry'
]
