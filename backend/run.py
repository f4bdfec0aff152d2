#!/usr/bin/env python3
"""
Development server entry point
"""

import sys
from pathlib import Path

import uvicorn

# Add the backend directory to Python path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

from apps_auth.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "apps_auth.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
