"""HTTP API for the Group Chat application."""
