"""Click command groups for the ffund CLI."""
