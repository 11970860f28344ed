"""Database layer: ORM models and session factories."""
