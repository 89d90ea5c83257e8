"""SMS4Dev HTTP server."""
