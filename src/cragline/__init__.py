"""Cragline client core: activity feeds, messaging, notifications, gyms and passes."""

__version__ = "0.1.0"
