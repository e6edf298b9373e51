"""Callscreen — application call assistant backend."""
