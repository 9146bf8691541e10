"""observability/ — structured logging."""
