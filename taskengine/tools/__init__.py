"""Capability tooling."""
