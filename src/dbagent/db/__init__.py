"""Document-store access."""
