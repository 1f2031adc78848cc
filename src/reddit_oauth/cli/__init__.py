"""Command line interface for the reddit OAuth client."""
