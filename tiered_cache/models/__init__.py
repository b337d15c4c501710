"""Data models for the cache tiers."""
