"""ストレージデータモデル定義

アップロード要求と取得結果のデータクラスを定義。
"""

from dataclasses import dataclass
from typing import BinaryIO, Optional

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1


@dataclass
class UploadData:
    """アップロード要求（1回のupload呼び出しの間だけ存在する）"""
    id: int              # クライアント指定のドキュメントID
    filename: str        # アップロード時の元ファイル名
    file: BinaryIO       # 読み込み可能なバイトストリーム
    size: Optional[int] = None  # バイトサイズ（不明な場合None）


@dataclass
class StoredDocument:
    """取得結果

    stream は先頭位置にあり、呼び出し側がcloseする責務を持つ。
    """
    id: int
    filename: str
    location: str
    content_type: str
    stream: BinaryIO

    def close(self) -> None:
        self.stream.close()

    def __enter__(self) -> 'StoredDocument':
        return self

    def __exit__(self, *exc) -> None:
        self.close()
