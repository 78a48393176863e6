"""Domain services for lottery draws, prizes and the audit chain."""
