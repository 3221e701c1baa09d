"""
Per-user settings pages (profile, password, theme, language, OAuth).
"""
