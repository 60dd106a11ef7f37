"""
Serverless entry point for the FastAPI backend.

Wraps the ASGI app with Mangum. Lifespan events stay enabled so the flow
context is built, and configuration validated, on cold start.
"""

import os
import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

os.environ.setdefault("DEBUG", "False")

from app import app as application
from mangum import Mangum

handler = Mangum(application, lifespan="auto")

__all__ = ["handler", "application"]
