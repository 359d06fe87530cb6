"""SQLAlchemy model for uploaded media metadata."""

from sqlalchemy import Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from micropub_site.db.session import Base


class Media(Base):
    """Metadata linking a content hash to the name and type it was uploaded with.

    Several rows may share one ``hex_digest``; the blob itself is stored once.
    """

    __tablename__ = "media"
    __table_args__ = (
        Index("index_media_hex_digest", "hex_digest", "id", "filename", "content_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hex_digest: Mapped[str] = mapped_column(Text, nullable=False)
    filename: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)
