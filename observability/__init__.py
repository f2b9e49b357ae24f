"""Structured turn events and their in-memory store."""
