"""HTTP API for editing sessions (FastAPI)."""
