from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.cms.models import Base


class SitemapEntry(Base):
    __tablename__ = "sitemap_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("sitemap_entries.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    # site relative, e.g. "/" or "/news/"; folders end with "/"
    site_path: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True)
    vfs_path: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    properties_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    parent: Mapped["SitemapEntry | None"] = relationship(
        "SitemapEntry",
        remote_side=[id],
        back_populates="children",
    )
    children: Mapped[list["SitemapEntry"]] = relationship(
        "SitemapEntry",
        back_populates="parent",
        cascade="all, delete-orphan",
        order_by="SitemapEntry.position",
    )
