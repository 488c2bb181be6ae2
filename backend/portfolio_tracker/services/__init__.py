"""Domain services for quotes, portfolio positions and goals."""
