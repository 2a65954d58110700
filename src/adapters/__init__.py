"""Integration adapters for jobscope.

Adapters implement the core ports on top of Telethon, the Bot API, SQLite
and config.json.
"""
