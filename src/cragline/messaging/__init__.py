"""Direct messaging."""
