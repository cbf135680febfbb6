"""S3コンテンツストア

AWS S3およびS3互換ストレージ（MinIO等）に対応。
ロケーションは s3://<bucket>/<prefix>/<id>/<filename> 形式。
"""

import logging
import tempfile
from typing import BinaryIO, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..registry import BackendRegistry, CONTENT_STORE
from ..config import S3Config
from ..exceptions import ContentNotFoundError, ContentStoreError
from .base import ContentStore, COPY_CHUNK_SIZE

logger = logging.getLogger(__name__)

# これを超えるとディスクに退避
SPOOL_MAX_SIZE = 1 << 20

_NOT_FOUND_CODES = ('NoSuchKey', '404', 'NotFound')


def _is_not_found(error: ClientError) -> bool:
    return error.response.get('Error', {}).get('Code', '') in _NOT_FOUND_CODES


@BackendRegistry.register(CONTENT_STORE, "s3")
class S3ContentStore(ContentStore):
    """S3コンテンツストア"""

    def __init__(self, config: S3Config = None, client=None):
        """
        S3ストアを初期化

        Args:
            config: S3設定。Noneの場合は環境変数から読み込み
            client: boto3クライアント（テスト用に差し替え可能）
        """
        if config is None:
            config = S3Config.from_env()

        if client is None:
            client_kwargs = {
                'aws_access_key_id': config.access_key_id,
                'aws_secret_access_key': config.secret_access_key,
                'region_name': config.region
            }
            if config.endpoint_url:
                client_kwargs['endpoint_url'] = config.endpoint_url
            client = boto3.client('s3', **client_kwargs)

        self.client = client
        self.bucket_name = config.bucket_name
        self.prefix = config.prefix.strip('/')
        logger.info(f"S3ContentStore initialized: bucket={self.bucket_name}, prefix={self.prefix}")

    def _key_for(self, document_id: int, filename: str) -> str:
        parts = [self.prefix, str(document_id), self.safe_filename(filename)]
        return '/'.join(p for p in parts if p)

    def _parse_location(self, location: str) -> Tuple[str, str]:
        """s3://bucket/key を (bucket, key) に分解"""
        if not location.startswith('s3://'):
            raise ContentNotFoundError(f"not an s3 location: {location}")
        bucket, _, key = location[len('s3://'):].partition('/')
        if not bucket or not key:
            raise ContentNotFoundError(f"malformed s3 location: {location}")
        return bucket, key

    def store(self, document_id: int, filename: str, stream: BinaryIO) -> str:
        key = self._key_for(document_id, filename)
        try:
            self.client.upload_fileobj(stream, self.bucket_name, key)
        except (ClientError, BotoCoreError) as e:
            raise ContentStoreError(f"S3 upload failed: {key} - {e}") from e
        logger.debug(f"S3 upload success: {key}")
        return f"s3://{self.bucket_name}/{key}"

    def open(self, location: str) -> BinaryIO:
        bucket, key = self._parse_location(location)
        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ContentNotFoundError(f"no content at {location}") from e
            raise ContentStoreError(f"S3 get failed: {location} - {e}") from e
        except BotoCoreError as e:
            raise ContentStoreError(f"S3 get failed: {location} - {e}") from e

        # MIME判定後に先頭へ戻すため、シーク可能な一時ファイルへ展開する
        spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE)
        body = response['Body']
        try:
            while True:
                chunk = body.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                spool.write(chunk)
        except (OSError, BotoCoreError) as e:
            spool.close()
            raise ContentStoreError(f"S3 read failed: {location} - {e}") from e
        finally:
            body.close()
        spool.seek(0)
        return spool

    def exists(self, location: str) -> bool:
        try:
            bucket, key = self._parse_location(location)
        except ContentNotFoundError:
            return False
        try:
            self.client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise ContentStoreError(f"S3 head failed: {location} - {e}") from e
        except BotoCoreError as e:
            raise ContentStoreError(f"S3 head failed: {location} - {e}") from e
        return True

    def delete(self, location: str) -> bool:
        try:
            bucket, key = self._parse_location(location)
            self.client.delete_object(Bucket=bucket, Key=key)
            return True
        except (ContentNotFoundError, ClientError, BotoCoreError) as e:
            logger.error(f"S3 delete failed: {location} - {e}")
            return False
