"""Command line front-end for Backspin."""
