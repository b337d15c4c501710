"""Core cache services."""
