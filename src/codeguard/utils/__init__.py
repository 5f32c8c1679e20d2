"""Shared helpers for codeguard."""
