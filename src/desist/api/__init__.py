"""DESIST HTTP API package."""
