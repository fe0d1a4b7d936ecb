import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    db_pools: str
    log_level: str

    storage_backend: str
    storage_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    user_admin: str
    user_guest: str
    user_export: str
    user_deleted_resource: str
    group_guests: str

    auto_lock: bool
    decorator_config: str
    session_max_inactive: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///cms.db"),
        db_pools=_getenv("DB_POOLS", ""),
        log_level=_getenv("LOG_LEVEL", "INFO"),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        storage_root=_getenv("STORAGE_ROOT", ""),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "nyc3"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        # empty values are passed through so DefaultUsers can reject them
        user_admin=os.environ.get("CMS_USER_ADMIN", "Admin"),
        user_guest=os.environ.get("CMS_USER_GUEST", "Guest"),
        user_export=os.environ.get("CMS_USER_EXPORT", "Export"),
        user_deleted_resource=os.environ.get("CMS_USER_DELETED_RESOURCE", ""),
        group_guests=os.environ.get("CMS_GROUP_GUESTS", "Guests"),
        auto_lock=_getenv_bool("CMS_AUTO_LOCK", True),
        decorator_config=_getenv("CMS_DECORATOR_CONFIG", ""),
        session_max_inactive=_getenv_int("CMS_SESSION_MAX_INACTIVE", 8 * 3600),
    )


def parse_db_pools(raw: str) -> dict[str, str]:
    """
    Parse `name=url;name=url` into a mapping. Blank entries are ignored.
    """
    pools: dict[str, str] = {}
    for part in (raw or "").split(";"):
        part = part.strip()
        if not part or "=" not in part:
            continue
        name, url = part.split("=", 1)
        name = name.strip()
        url = url.strip()
        if name and url:
            pools[name] = url
    return pools


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "DB_POOLS": parse_db_pools(s.db_pools),
        "LOG_LEVEL": s.log_level,
        "STORAGE_BACKEND": s.storage_backend,
        "STORAGE_ROOT": s.storage_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "CMS_USER_ADMIN": s.user_admin,
        "CMS_USER_GUEST": s.user_guest,
        "CMS_USER_EXPORT": s.user_export,
        "CMS_USER_DELETED_RESOURCE": s.user_deleted_resource,
        "CMS_GROUP_GUESTS": s.group_guests,
        "CMS_AUTO_LOCK": s.auto_lock,
        "CMS_DECORATOR_CONFIG": s.decorator_config,
        "CMS_SESSION_MAX_INACTIVE": s.session_max_inactive,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # file upload limits (25MB)
        "MAX_CONTENT_LENGTH": 25 * 1024 * 1024,
    }
