"""API server entry point for python -m soundtrack.api"""
import uvicorn
from soundtrack.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "soundtrack.api.app:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )
