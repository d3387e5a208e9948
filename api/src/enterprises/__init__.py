"""Enterprise accounts and their course assignments."""
