from __future__ import annotations

import json
import logging
import posixpath
from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from app.cms.errors import CmsError, ErrorCode
from app.cms.modules.sitemap.models import SitemapEntry

logger = logging.getLogger(__name__)


@dataclass
class ClientSitemapEntry:
    """Sitemap entry as sent over the RPC boundary."""

    id: int
    name: str
    title: str
    site_path: str
    vfs_path: str
    position: int = 0
    properties: dict[str, str] = field(default_factory=dict)
    has_children: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClientSitemapEntry":
        return cls(
            id=int(data["id"]),
            name=str(data.get("name") or ""),
            title=str(data.get("title") or ""),
            site_path=str(data.get("site_path") or ""),
            vfs_path=str(data.get("vfs_path") or ""),
            position=int(data.get("position") or 0),
            properties=dict(data.get("properties") or {}),
            has_children=bool(data.get("has_children")),
        )


def normalize_site_path(root: str | None) -> str:
    p = (root or "").strip().replace("\\", "/")
    if not p.startswith("/"):
        p = "/" + p
    trailing = p.endswith("/")
    p = posixpath.normpath(p)
    if p.startswith("//"):
        p = p[1:]
    if trailing and p != "/":
        p += "/"
    return p


def _properties(entry: SitemapEntry) -> dict[str, str]:
    if not entry.properties_json:
        return {}
    try:
        value = json.loads(entry.properties_json)
    except json.JSONDecodeError:
        logger.warning("Sitemap entry %s has invalid properties JSON", entry.id)
        return {}
    return value if isinstance(value, dict) else {}


def to_client_entry(s: Session, entry: SitemapEntry) -> ClientSitemapEntry:
    # queried rather than read from `entry.children`, which may be stale in this session
    has_children = s.query(SitemapEntry.id).filter(SitemapEntry.parent_id == entry.id).first() is not None
    return ClientSitemapEntry(
        id=entry.id,
        name=entry.name,
        title=entry.title,
        site_path=entry.site_path,
        vfs_path=entry.vfs_path,
        position=entry.position,
        properties=_properties(entry),
        has_children=has_children,
    )


def find_entry(s: Session, root: str | None) -> SitemapEntry | None:
    path = normalize_site_path(root)
    candidates = [path]
    # folder entries are stored with a trailing slash
    if not path.endswith("/"):
        candidates.append(path + "/")
    elif path != "/":
        candidates.append(path.rstrip("/"))
    for candidate in candidates:
        entry = s.query(SitemapEntry).filter(SitemapEntry.site_path == candidate).one_or_none()
        if entry is not None:
            return entry
    return None


class SitemapService:
    def __init__(self, s: Session):
        self.s = s

    def _require(self, root: str | None) -> SitemapEntry:
        entry = find_entry(self.s, root)
        if entry is None:
            raise CmsError(ErrorCode.NOT_FOUND, f"No sitemap entry for path {normalize_site_path(root)!r}")
        return entry

    def get_sitemap_entry(self, root: str | None) -> ClientSitemapEntry:
        return to_client_entry(self.s, self._require(root))

    def get_sitemap_children(self, root: str | None) -> list[ClientSitemapEntry]:
        parent = self._require(root)
        children = (
            self.s.query(SitemapEntry)
            .filter(SitemapEntry.parent_id == parent.id)
            .order_by(SitemapEntry.position.asc(), SitemapEntry.name.asc())
            .all()
        )
        return [to_client_entry(self.s, c) for c in children]


def add_entry(
    s: Session,
    *,
    parent_path: str | None,
    name: str,
    title: str = "",
    vfs_path: str = "",
    position: int = 0,
    properties: dict[str, str] | None = None,
    folder: bool = True,
) -> SitemapEntry:
    """
    Create a sitemap entry below `parent_path` (`None` creates the root "/").
    """
    if parent_path is None:
        parent = None
        site_path = "/"
    else:
        parent = find_entry(s, parent_path)
        if parent is None:
            raise CmsError(ErrorCode.NOT_FOUND, f"Parent sitemap entry not found: {parent_path!r}")
        clean = (name or "").strip().strip("/")
        if not clean or "/" in clean:
            raise CmsError(ErrorCode.BAD_NAME, f"Invalid sitemap entry name: {name!r}")
        base = parent.site_path if parent.site_path.endswith("/") else parent.site_path + "/"
        site_path = base + clean + ("/" if folder else "")
        name = clean

    if find_entry(s, site_path) is not None:
        raise CmsError(ErrorCode.NOT_EMPTY, f"Sitemap entry already exists: {site_path!r}")

    entry = SitemapEntry(
        parent_id=parent.id if parent else None,
        name=name or "/",
        title=title,
        site_path=site_path,
        vfs_path=vfs_path,
        position=position,
        properties_json=json.dumps(properties, sort_keys=True) if properties else None,
    )
    s.add(entry)
    s.flush()
    return entry
