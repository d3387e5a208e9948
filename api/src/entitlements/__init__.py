"""Course entitlement decisions."""

from src.entitlements.resolver import AccessDecision, AccessRule, EntitlementResolver


__all__ = ["AccessDecision", "AccessRule", "EntitlementResolver"]
