"""Command line interface for pipesim."""
