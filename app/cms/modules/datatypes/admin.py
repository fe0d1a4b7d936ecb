from __future__ import annotations

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, url_for

from app.cms.audit import record_event
from app.cms.constants import RESOURCE_TYPES
from app.cms.db import db_session
from app.cms.errors import CmsError, ErrorCode
from app.cms.modules.datatypes.service import (
    add_extension,
    extension_mapping,
    extensions_by_resource_type,
    remove_extension,
)
from app.cms.rbac import require_permission

bp = Blueprint("datatypes", __name__)

_ERROR_MESSAGES = {
    ErrorCode.NOT_EMPTY: "Extension is already in use by another resource type.",
    ErrorCode.BAD_NAME: "Invalid extension format (no blanks allowed).",
}


@bp.get("/datatypes")
@require_permission("datatypes.view")
def list_datatypes():
    s = db_session()
    by_type = extensions_by_resource_type(extension_mapping(s)) or {}
    entries = [(res_type, by_type.get(res_type, [])) for res_type in RESOURCE_TYPES]
    return render_template("admin/datatypes/list.html", entries=entries)


@bp.post("/datatypes/new")
@require_permission("datatypes.edit")
def new_extension():
    s = db_session()
    res_type = (request.form.get("restype") or "").strip()
    name = (request.form.get("NAME") or "").strip()
    if not name:
        # form has not been filled in yet
        flash("Extension name is required.", "danger")
        return redirect(url_for("datatypes.list_datatypes"))

    try:
        row = add_extension(s, name, res_type)
    except CmsError as e:
        s.rollback()
        msg = _ERROR_MESSAGES.get(e.code)
        if msg is None:
            current_app.logger.warning("Adding extension %r to %r failed: %s", name, res_type, e)
            msg = f"Could not add extension '{name}' to resource type '{res_type}': {e}"
        flash(msg, "danger")
        return redirect(url_for("datatypes.list_datatypes"))

    record_event(
        s,
        actor=g.current_user,
        action="datatypes.add",
        entity_type="ExtensionMapping",
        entity_id=row.extension,
        metadata={"extension": row.extension, "resource_type": row.resource_type},
    )
    s.commit()
    flash(f"Extension '{row.extension}' mapped to {row.resource_type}.", "success")
    return redirect(url_for("datatypes.list_datatypes"))


@bp.post("/datatypes/delete")
@require_permission("datatypes.edit")
def delete_extension():
    s = db_session()
    extension = (request.form.get("extension") or "").strip()
    if request.form.get("sure") != "true":
        flash(f"Confirm deletion of extension '{extension}'.", "warning")
        return redirect(url_for("datatypes.list_datatypes"))

    row = remove_extension(s, extension)
    if row is not None:
        record_event(
            s,
            actor=g.current_user,
            action="datatypes.delete",
            entity_type="ExtensionMapping",
            entity_id=row.extension,
            metadata={"extension": row.extension, "resource_type": row.resource_type},
        )
    s.commit()
    flash(f"Extension '{extension}' removed.", "success")
    return redirect(url_for("datatypes.list_datatypes"))
