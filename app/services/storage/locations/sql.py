"""SQLロケーションレジストリ

SQLAlchemyで document_locations テーブルに対応を永続化する。
再起動後もIDとロケーションの対応が保持される。
"""

import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from define_db.database import Base, create_db_engine, create_session_factory
from define_db.models import DocumentLocation

from ..registry import BackendRegistry, LOCATION_REGISTRY
from ..config import RegistryConfig
from ..exceptions import NotFoundError, RegistryError
from .base import LocationRegistry

logger = logging.getLogger(__name__)


@BackendRegistry.register(LOCATION_REGISTRY, "sql")
class SqlLocationRegistry(LocationRegistry):
    """SQLAlchemyベースのロケーションレジストリ"""

    def __init__(self, config: Optional[RegistryConfig] = None, engine: Optional[Engine] = None):
        """
        レジストリを初期化（テーブルが無ければ作成）

        Args:
            config: レジストリ設定。Noneの場合は環境変数から読み込み
            engine: 既存エンジン（テスト用に差し替え可能）
        """
        if engine is None:
            if config is None:
                config = RegistryConfig.from_env()
            engine = create_db_engine(config.database_url)

        self._engine = engine
        self._session_factory = create_session_factory(engine)
        try:
            Base.metadata.create_all(bind=engine, tables=[DocumentLocation.__table__])
        except SQLAlchemyError as e:
            raise RegistryError(f"failed to initialize location table: {e}") from e
        logger.info(f"SqlLocationRegistry initialized: url={engine.url!r}")

    def exists(self, document_id: int) -> bool:
        try:
            with self._session_factory() as session:
                return session.get(DocumentLocation, document_id) is not None
        except SQLAlchemyError as e:
            logger.error(f"Error checking path existence: {e}")
            raise RegistryError(f"failed checking id {document_id}") from e

    def save_path(self, document_id: int, location: str) -> None:
        try:
            with self._session_factory() as session:
                session.merge(DocumentLocation(id=document_id, location=location))
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error saving path: {e}")
            raise RegistryError(f"failed saving path for id {document_id}") from e

    def get_path(self, document_id: int) -> str:
        try:
            with self._session_factory() as session:
                entry = session.get(DocumentLocation, document_id)
                location = entry.location if entry else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving path: {e}")
            raise RegistryError(f"failed retrieving id {document_id}") from e
        if location is None:
            raise NotFoundError(f"path with id {document_id} not found")
        return location
