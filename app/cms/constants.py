"""
Central constants for the CMS application.
"""
from __future__ import annotations

# Resource types that file extensions can be mapped to, in display order
RESOURCE_TYPES = (
    "folder",
    "plain",
    "binary",
    "image",
    "jsp",
    "xmlpage",
    "xmlcontent",
    "pointer",
)

# Default extension mapping seeded by scripts/init_db.py
DEFAULT_EXTENSIONS = {
    "txt": "plain",
    "css": "plain",
    "js": "plain",
    "html": "plain",
    "htm": "plain",
    "pdf": "binary",
    "zip": "binary",
    "doc": "binary",
    "gif": "image",
    "jpg": "image",
    "jpeg": "image",
    "png": "image",
    "jsp": "jsp",
    "xml": "xmlcontent",
}

# Permission keys used by the seed script and route decorators
PERMISSIONS = {
    "admin.view": "Admin: view shell",
    "datatypes.view": "Datatypes: view",
    "datatypes.edit": "Datatypes: edit",
    "sitemap.view": "Sitemap: view",
    "sitemap.edit": "Sitemap: edit",
    "sessions.view": "Sessions: view",
}
