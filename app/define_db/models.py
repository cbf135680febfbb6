from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column
from sqlalchemy.types import BigInteger
from sqlalchemy.types import DateTime
from sqlalchemy.types import Text
from define_db.database import Base
from datetime import datetime


class DocumentLocation(Base):
    __tablename__ = "document_locations"

    id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        # IDはクライアント指定のため自動採番しない
        autoincrement=False
    )
    location: Mapped[str] = mapped_column(
        # 絶対パス or s3:// URI
        Text,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(),
        default=datetime.now,
        onupdate=datetime.now,
    )
