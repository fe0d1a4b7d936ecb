"""
Explorer context menu rules.
"""
