"""brain-core test suite."""
