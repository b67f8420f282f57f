"""HTTP surface: FastAPI app factory and pydantic request/response models."""
