"""Core domain package for jobscope.

Core contains scanning, filtering, deduplication and fan-out logic without
any Telegram or storage-specific code, keeping the business logic portable.
"""
