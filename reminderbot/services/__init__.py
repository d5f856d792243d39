"""Durable-storage services backed by SQLAlchemy async sessions."""
