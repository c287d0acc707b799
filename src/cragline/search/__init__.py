"""Combined user and activity search."""
