"""Shared utilities: snapshot cache, snapshot models and HTTP helpers."""
