"""コンテンツストア抽象基底クラス

すべてのコンテンツストアが実装すべきインターフェースを定義。
コンテンツストアはIDとロケーションの対応を保持しない。
store() が返したロケーションの管理はロケーションレジストリが担当する。
"""

import posixpath
from abc import ABC, abstractmethod
from typing import BinaryIO

from ..exceptions import InvalidInputError

COPY_CHUNK_SIZE = 65536


class ContentStore(ABC):
    """コンテンツストアの抽象基底クラス"""

    # BackendRegistry.register で設定される
    mode: str = None

    # --- 書き込み系メソッド ---

    @abstractmethod
    def store(self, document_id: int, filename: str, stream: BinaryIO) -> str:
        """
        バイトストリームを保存する

        Args:
            document_id: ドキュメントID（保存キーに使用）
            filename: アップロード時の元ファイル名
            stream: 読み込み可能なバイトストリーム

        Returns:
            str: 保存先ロケーション（絶対パス or URI）

        Raises:
            ContentStoreError: ディレクトリ作成・ファイル作成・コピーに失敗した場合
        """
        pass

    @abstractmethod
    def delete(self, location: str) -> bool:
        """
        コンテンツを削除する（ベストエフォート）

        Args:
            location: store() が返したロケーション

        Returns:
            bool: 成功時True、失敗時は例外を送出せずFalse
        """
        pass

    # --- 読み取り系メソッド ---

    @abstractmethod
    def open(self, location: str) -> BinaryIO:
        """
        コンテンツを開く

        Args:
            location: store() が返したロケーション

        Returns:
            BinaryIO: 先頭位置のシーク可能なストリーム（呼び出し側がcloseする）

        Raises:
            ContentNotFoundError: ロケーションにコンテンツが存在しない場合
        """
        pass

    @abstractmethod
    def exists(self, location: str) -> bool:
        """
        コンテンツが存在するか確認する

        Args:
            location: ロケーション

        Returns:
            bool: 存在する場合True

        Raises:
            ContentStoreError: 存在確認自体に失敗した場合
        """
        pass

    # --- ユーティリティ ---

    @staticmethod
    def safe_filename(filename: str) -> str:
        """アップロードファイル名からディレクトリ成分を除去"""
        name = posixpath.basename((filename or '').replace('\\', '/')).strip()
        if name in ('', '.', '..'):
            raise InvalidInputError(f"invalid filename: {filename!r}")
        return name

    @staticmethod
    def filename_of(location: str) -> str:
        """ロケーションから元ファイル名を取得"""
        return posixpath.basename(location.replace('\\', '/'))
