"""HTTP surface: FastAPI application, dependencies and routes."""
