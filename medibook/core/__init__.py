"""Persistence for MediBook: ORM models, engine and repositories."""
