"""Report lifecycle and engagement core."""
