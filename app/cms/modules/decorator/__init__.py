"""
Text decoration: wraps configured words (abbreviations, glossary terms) in markup.
"""
