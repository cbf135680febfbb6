"""カスタム例外

ストレージ関連のエラーを表す例外クラス。
各例外は kind（invalid_input / not_found / internal）を持ち、
APIレイヤーはこの分類だけを見てHTTPステータスを決定する。
"""


class StorageError(Exception):
    """ストレージ操作の基底例外"""
    kind = "internal"


# --- 入力エラー ---

class InvalidInputError(StorageError):
    """不正な入力（リクエスト不備、サイズ超過、ID重複）"""
    kind = "invalid_input"


class AlreadyExistsError(InvalidInputError):
    """IDが既に登録済み"""

    def __init__(self, document_id: int):
        super().__init__(f"path with id {document_id} already exists")
        self.document_id = document_id


class UploadTooLargeError(InvalidInputError):
    """アップロードサイズが上限を超過"""

    def __init__(self, max_size: int):
        if max_size % (1 << 20) == 0:
            limit = f"{max_size >> 20}MB"
        else:
            limit = f"{max_size} bytes"
        super().__init__(f"The uploaded file is too big. Maximum file size is {limit}.")
        self.max_size = max_size


# --- 未検出エラー ---

class NotFoundError(StorageError):
    """IDまたはコンテンツが見つからない"""
    kind = "not_found"


class ContentNotFoundError(NotFoundError):
    """指定ロケーションにコンテンツが存在しない"""
    pass


# --- 内部エラー ---

class InternalError(StorageError):
    """I/O失敗、MIME判定失敗などの内部エラー"""
    kind = "internal"


class UnreachableContentError(InternalError):
    """登録済みロケーションにコンテンツが到達できない"""

    def __init__(self, document_id: int):
        super().__init__(f"file with ID {document_id} can't be reached at its path")
        self.document_id = document_id


class RegistryError(InternalError):
    """ロケーションレジストリの保存・参照エラー"""
    pass


class ContentStoreError(InternalError):
    """コンテンツストアのI/Oエラー"""
    pass


# --- 設定エラー ---

class StorageConfigError(StorageError):
    """設定エラー"""
    pass


class BackendNotRegisteredError(StorageError):
    """バックエンドが未登録"""
    pass
