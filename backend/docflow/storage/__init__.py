"""Document byte storage."""
