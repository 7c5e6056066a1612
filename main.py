"""
Simple script to run the FastAPI server.
"""

import uvicorn

from reloop.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "reloop.api.app:app",
        host="0.0.0.0",
        port=8900,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        timeout_keep_alive=30,
    )
