"""Command-line client for the Tower auth API."""
