"""Authentication and role checks for bearer tokens issued by the identity service."""
