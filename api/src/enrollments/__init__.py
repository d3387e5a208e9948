"""Session enrollments and the seat ledger backing them."""
