"""Applications of comptpfa, currently utilities for testing."""
