"""
Serverless entrypoint for the SailMatch API
Re-exports the FastAPI app instance for the hosting platform
"""
from app.main import app

__all__ = ["app"]
