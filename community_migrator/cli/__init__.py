"""Command-line interface for the community migration tool."""
