"""
File extension to resource type mapping (admin-only).
"""
