"""
Travel Book backend package.

This package provides a FastAPI application for recording travel memories,
with database and object-storage abstractions that can run fully in memory
for local development and tests.
"""
