"""Public IP sources and consensus."""
