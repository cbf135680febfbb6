"""バックエンドレジストリ

コンテンツストア / ロケーションレジストリの実装クラスを
種別（kind）とモード名で動的に登録・取得する。
"""

from typing import Dict, Type

from .exceptions import BackendNotRegisteredError

CONTENT_STORE = "content_store"
LOCATION_REGISTRY = "location_registry"


class BackendRegistry:
    """ストレージバックエンドのレジストリ"""

    _backends: Dict[str, Dict[str, Type]] = {
        CONTENT_STORE: {},
        LOCATION_REGISTRY: {},
    }

    @classmethod
    def register(cls, kind: str, mode: str):
        """
        バックエンドクラスを登録するデコレータ

        使用例:
            @BackendRegistry.register(CONTENT_STORE, "s3")
            class S3ContentStore(ContentStore):
                ...
        """
        def decorator(backend_class: Type):
            cls._backends.setdefault(kind, {})[mode.lower()] = backend_class
            backend_class.mode = mode.lower()
            return backend_class
        return decorator

    @classmethod
    def get(cls, kind: str, mode: str) -> Type:
        """
        モード名からバックエンドクラスを取得

        Args:
            kind: バックエンド種別（CONTENT_STORE / LOCATION_REGISTRY）
            mode: モード名（'local', 's3', 'memory', 'sql'等）

        Returns:
            バックエンドクラス

        Raises:
            BackendNotRegisteredError: 未登録のモードが指定された場合
        """
        backends = cls._backends.get(kind, {})
        mode_lower = mode.lower()
        if mode_lower not in backends:
            available = ", ".join(backends.keys())
            raise BackendNotRegisteredError(
                f"Unknown {kind} mode: {mode}. Available: {available}"
            )
        return backends[mode_lower]

    @classmethod
    def list_modes(cls, kind: str) -> list:
        """登録済みモード一覧を取得"""
        return list(cls._backends.get(kind, {}).keys())

    @classmethod
    def is_registered(cls, kind: str, mode: str) -> bool:
        """モードが登録済みか確認"""
        return mode.lower() in cls._backends.get(kind, {})
