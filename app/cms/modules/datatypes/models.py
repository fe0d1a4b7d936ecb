from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.cms.models import Base


class ExtensionMapping(Base):
    __tablename__ = "extension_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # lower-case, without leading "*" or "."
    extension: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    resource_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
