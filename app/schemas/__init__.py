"""Request and payload schemas."""
