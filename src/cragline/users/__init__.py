"""User profiles and the follow graph."""
