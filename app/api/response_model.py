from pydantic import BaseModel
from typing import List, Optional


class UploadResponse(BaseModel):
    message: str
    id: int


class StorageInfoResponse(BaseModel):
    """ストレージ情報レスポンス"""
    mode: str  # 'local' or 's3'
    registry_mode: str  # 'memory' or 'sql'
    local_path: Optional[str] = None  # ローカルパス（ローカルモードのみ）
    bucket_name: Optional[str] = None  # S3バケット名（S3モードのみ）
    max_upload_size: Optional[int] = None
    available_modes: List[str] = []
    available_registry_modes: List[str] = []
