#!/usr/bin/env python
"""Script to run the task board backend server."""
import os
from pathlib import Path

import uvicorn

if __name__ == "__main__":
    # Relative SQLite paths and .env files resolve from the repo root
    os.chdir(Path(__file__).resolve().parent)
    uvicorn.run(
        "taskboard.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=True
    )
