"""Media helpers (duration probing)."""
