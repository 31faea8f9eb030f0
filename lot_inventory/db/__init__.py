"""Remote lot store (PostgreSQL)."""
