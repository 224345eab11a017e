"""Outlet service desk: ticket and service request lifecycles."""

__version__ = "0.1.0"
