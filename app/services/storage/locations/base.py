"""ロケーションレジストリ抽象基底クラス

ドキュメントID → 保存先ロケーションの対応を管理する。
コンテンツの中身については関知しない。
"""

from abc import ABC, abstractmethod


class LocationRegistry(ABC):
    """ロケーションレジストリの抽象基底クラス"""

    # BackendRegistry.register で設定される
    mode: str = None

    @abstractmethod
    def exists(self, document_id: int) -> bool:
        """
        IDが登録済みか確認する

        未登録は例外ではなくFalseを返す。

        Raises:
            RegistryError: 下位ストレージのエラー
        """
        pass

    @abstractmethod
    def save_path(self, document_id: int, location: str) -> None:
        """
        IDとロケーションの対応を保存する

        既存の対応は無条件に上書きする。
        重複チェックは呼び出し側（StorageService）の責務。

        Raises:
            RegistryError: 下位ストレージのエラー
        """
        pass

    @abstractmethod
    def get_path(self, document_id: int) -> str:
        """
        IDに対応するロケーションを取得する

        Raises:
            NotFoundError: IDが未登録の場合
            RegistryError: 下位ストレージのエラー
        """
        pass
