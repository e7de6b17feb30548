"""
Backend package for the basic-food-basket distribution service.

This package provides a FastAPI application with database, cache and storage
abstractions for registering families, tracking institution inventory and
recording basket deliveries.
"""
