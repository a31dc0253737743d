"""Core infrastructure: errors, HTTP, circuit breaking, strategy cascades."""
