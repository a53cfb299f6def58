"""Command-line interfaces for the signal trader."""
