"""Typer command line client for the Streamhub API."""
