"""Gyms, favourites and gym administration."""
