"""FastAPI surface of the clarification pipeline."""
