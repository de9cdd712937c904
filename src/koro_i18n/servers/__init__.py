"""Starlette application, auth routes and request middleware."""
