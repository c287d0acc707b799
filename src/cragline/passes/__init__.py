"""Membership pass wallet and barcode scanner."""
