"""Pydantic schemas exchanged between components."""
