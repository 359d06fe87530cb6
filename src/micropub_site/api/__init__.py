"""HTTP API for the Micropub site."""
