"""
User generated content: form sessions over XML content.
"""
