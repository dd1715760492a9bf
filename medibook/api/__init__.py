"""HTTP API for MediBook."""
