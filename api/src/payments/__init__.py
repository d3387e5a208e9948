"""Course purchases and subscription payments."""
