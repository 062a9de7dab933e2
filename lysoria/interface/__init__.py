"""Terminal interface for Lysoria."""
