"""Quiz attempt engine and its HTTP service."""
