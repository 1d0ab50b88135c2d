"""FastAPI surface for player and dashboard clients."""
