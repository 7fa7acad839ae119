"""Compose loading, port proxies, journal logs, systemd install and provider handlers for faasd."""

__version__ = "0.1.0"