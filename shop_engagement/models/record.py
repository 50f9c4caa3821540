from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shop_engagement.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredRecord(Base):
    __tablename__ = "engagement_records"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    # Raw JSON text; decoding happens in the store so corrupt rows read as empty.
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
