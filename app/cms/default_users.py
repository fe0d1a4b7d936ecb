"""
Names of the built-in users and groups.

Every CMS install has an administrator, an anonymous guest, an export user
(used when writing static exports) and a guests group. Their names are
configurable; this registry answers "is this principal one of them?".

Principal names may be qualified with an organizational unit path
(`"sales/Guest"`), so each query also accepts the OU-suffixed form. The
suffix must follow a `/`: `"sales/MyGuest"` is not the guest user, unlike a
plain `endswith(name)` check.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from app.cms.errors import CmsRuntimeError, ErrorCode
from app.cms.utils import is_blank as _is_blank

DEFAULT_USER_ADMIN = "Admin"
DEFAULT_USER_GUEST = "Guest"
DEFAULT_USER_EXPORT = "Export"
DEFAULT_USER_DELETED_RESOURCE = "Admin"
DEFAULT_GROUP_GUESTS = "Guests"

OU_SEPARATOR = "/"


def _matches(name: str | None, principal: str) -> bool:
    if _is_blank(name):
        return False
    return name == principal or name.endswith(OU_SEPARATOR + principal)


class DefaultUsers:
    def __init__(
        self,
        user_admin: str | None = DEFAULT_USER_ADMIN,
        user_guest: str | None = DEFAULT_USER_GUEST,
        user_export: str | None = DEFAULT_USER_EXPORT,
        user_deleted_resource: str | None = DEFAULT_USER_DELETED_RESOURCE,
        group_guests: str | None = DEFAULT_GROUP_GUESTS,
    ) -> None:
        if _is_blank(user_admin) or _is_blank(user_guest) or _is_blank(user_export) or _is_blank(group_guests):
            raise CmsRuntimeError(
                ErrorCode.ERR_USER_GROUP_NAMES_EMPTY,
                "Default user and group names must not be empty.",
            )
        self._user_admin = str(user_admin).strip()
        self._user_guest = str(user_guest).strip()
        self._user_export = str(user_export).strip()
        if _is_blank(user_deleted_resource):
            self._user_deleted_resource = self._user_admin
        else:
            self._user_deleted_resource = str(user_deleted_resource).strip()
        self._group_guests = str(group_guests).strip()

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "DefaultUsers":
        return cls(
            config.get("CMS_USER_ADMIN"),
            config.get("CMS_USER_GUEST"),
            config.get("CMS_USER_EXPORT"),
            config.get("CMS_USER_DELETED_RESOURCE"),
            config.get("CMS_GROUP_GUESTS"),
        )

    @property
    def user_admin(self) -> str:
        return self._user_admin

    @property
    def user_guest(self) -> str:
        return self._user_guest

    @property
    def user_export(self) -> str:
        return self._user_export

    @property
    def user_deleted_resource(self) -> str:
        """User that is shown as last modifier of resources whose owner was deleted."""
        return self._user_deleted_resource

    @property
    def group_guests(self) -> str:
        return self._group_guests

    def is_default_user(self, user_name: str | None) -> bool:
        return any(
            _matches(user_name, principal)
            for principal in (self._user_admin, self._user_guest, self._user_export, self._user_deleted_resource)
        )

    def is_user_admin(self, user_name: str | None) -> bool:
        return _matches(user_name, self._user_admin)

    def is_user_guest(self, user_name: str | None) -> bool:
        return _matches(user_name, self._user_guest)

    def is_user_export(self, user_name: str | None) -> bool:
        return _matches(user_name, self._user_export)

    def is_group_guests(self, group_name: str | None) -> bool:
        return _matches(group_name, self._group_guests)

    def __repr__(self) -> str:
        return (
            f"DefaultUsers(admin={self._user_admin!r}, guest={self._user_guest!r}, "
            f"export={self._user_export!r}, deleted_resource={self._user_deleted_resource!r}, "
            f"guests={self._group_guests!r})"
        )
