"""Explicit per-user course entitlements."""
