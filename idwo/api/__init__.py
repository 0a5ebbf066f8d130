"""HTTP surface: FastAPI app, tool endpoints and middleware."""
