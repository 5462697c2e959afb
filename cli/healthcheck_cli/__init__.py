"""Command-line front end for the healthcheck engine."""
