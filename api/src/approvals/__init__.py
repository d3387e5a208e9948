"""Admin review of course publication and payments."""
