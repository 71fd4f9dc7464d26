"""Export pipeline services."""
