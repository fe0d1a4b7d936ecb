from __future__ import annotations

import logging
from collections.abc import Mapping

from sqlalchemy.orm import Session

from app.cms.constants import RESOURCE_TYPES
from app.cms.errors import CmsError, ErrorCode
from app.cms.modules.datatypes.models import ExtensionMapping

logger = logging.getLogger(__name__)


def format_extension(name: str | None) -> str:
    """
    Normalize a file extension as typed by an admin.

    Leading stars and dots are cut off ("*.HTML" -> "html"); extensions are
    not case sensitive. A blank inside the name is rejected.
    """
    raw = (name or "").strip()
    res = raw.lstrip("*.")
    if not res:
        raise CmsError(ErrorCode.BAD_NAME, f"Invalid extension: {name!r}")
    if " " in res:
        # name contained a blank
        raise CmsError(ErrorCode.BAD_NAME, f"Extension must not contain blanks: {name!r}")
    return res.lower()


def extension_mapping(s: Session) -> dict[str, str]:
    rows = s.query(ExtensionMapping).order_by(ExtensionMapping.extension.asc()).all()
    return {r.extension: r.resource_type for r in rows}


def extensions_by_resource_type(mapping: Mapping[str, str] | None) -> dict[str, list[str]] | None:
    """Invert `extension -> type` into `type -> [extensions]`."""
    if mapping is None:
        return None
    out: dict[str, list[str]] = {}
    for ext, res_type in mapping.items():
        out.setdefault(res_type, []).append(ext)
    for exts in out.values():
        exts.sort()
    return out


def add_extension(s: Session, name: str | None, resource_type: str | None) -> ExtensionMapping:
    res_type = (resource_type or "").strip()
    if res_type not in RESOURCE_TYPES:
        raise CmsError(ErrorCode.NOT_FOUND, f"Unknown resource type: {resource_type!r}")
    ext = format_extension(name)
    existing = s.query(ExtensionMapping).filter(ExtensionMapping.extension == ext).one_or_none()
    if existing is not None:
        raise CmsError(ErrorCode.NOT_EMPTY, f"Extension {ext!r} is already mapped to {existing.resource_type!r}")
    row = ExtensionMapping(extension=ext, resource_type=res_type)
    s.add(row)
    s.flush()
    logger.info("Mapped extension %s -> %s", ext, res_type)
    return row


def remove_extension(s: Session, extension: str | None) -> ExtensionMapping | None:
    ext = (extension or "").strip().lower()
    if not ext:
        return None
    row = s.query(ExtensionMapping).filter(ExtensionMapping.extension == ext).one_or_none()
    if row is not None:
        s.delete(row)
        s.flush()
        logger.info("Removed extension mapping %s", ext)
    return row


def resource_type_for(s: Session, filename: str) -> str:
    """Resource type for a file name, `plain` when the extension is unmapped."""
    _, dot, ext = filename.rpartition(".")
    if not dot or not ext:
        return "plain"
    row = s.query(ExtensionMapping).filter(ExtensionMapping.extension == ext.lower()).one_or_none()
    return row.resource_type if row else "plain"
