"""Clients for external household data sources."""
