"""Core domain package for protoverse.

Core contains bridge routing, message enrichment, rendering, relaying and
correlation logic without any Telethon, Discord or storage-specific code,
keeping the relay logic portable.
"""
