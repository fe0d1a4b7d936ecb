"""
Sitemap entries and the sitemap RPC service.
"""
