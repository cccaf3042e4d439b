"""
API module.
Contains the FastAPI application and routes for submitting and polling exports.
"""

from export_worker.api.main import create_app, run

__all__ = ["create_app", "run"]
