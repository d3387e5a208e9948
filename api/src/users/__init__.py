"""User records consumed by entitlement checks and notification fan-out."""
