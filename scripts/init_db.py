import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.cms.config import load_config
from app.cms.constants import DEFAULT_EXTENSIONS, PERMISSIONS
from app.cms.default_users import DefaultUsers
from app.cms.models import Permission, Role, User
from app.cms.modules.datatypes.models import ExtensionMapping
from app.cms.modules.sitemap.service import add_entry, find_entry
from scripts._db_utils import script_session


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/default users in an idempotent way.
    Does NOT overwrite an existing user's password.
    """
    default_users = DefaultUsers.from_config(load_config())
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///cms.db").strip()

    with script_session(db_url) as s:
        # Permissions (idempotent)
        perms: list[Permission] = []
        for key, name in PERMISSIONS.items():
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            perms.append(p)

        # Roles
        role_admin = s.query(Role).filter(Role.key == "admin").one_or_none()
        if not role_admin:
            role_admin = Role(key="admin", name="Administrator")
            s.add(role_admin)
        for p in perms:
            if p not in role_admin.permissions:
                role_admin.permissions.append(p)

        role_guests = s.query(Role).filter(Role.key == "guests").one_or_none()
        if not role_guests:
            role_guests = Role(key="guests", name=default_users.group_guests)
            s.add(role_guests)

        # Default users. Guest and export never log in interactively; they get
        # a random unusable password.
        def ensure_user(name: str, password: str, role: Role) -> User:
            u = s.query(User).filter(User.name == name).one_or_none()
            if not u:
                u = User(name=name, password_hash=generate_password_hash(password), is_active=True)
                s.add(u)
            if role not in u.roles:
                u.roles.append(role)
            return u

        ensure_user(default_users.user_admin, admin_password, role_admin)
        ensure_user(default_users.user_guest, os.urandom(24).hex(), role_guests)
        ensure_user(default_users.user_export, os.urandom(24).hex(), role_guests)

        # Extension mapping
        for ext, res_type in DEFAULT_EXTENSIONS.items():
            if not s.query(ExtensionMapping).filter(ExtensionMapping.extension == ext).one_or_none():
                s.add(ExtensionMapping(extension=ext, resource_type=res_type))

        # Sitemap root
        s.flush()
        if find_entry(s, "/") is None:
            add_entry(s, parent_path=None, name="/", title="Home", vfs_path="/sites/default/")

    print("Initialized database (seed_only).")
    print(f"Admin user: {default_users.user_admin}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
