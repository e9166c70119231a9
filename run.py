# run.py
import uvicorn

from marketingvoice.core.config import settings

if __name__ == "__main__":
    print(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")
    print(f"API prefix: {settings.API_V1_PREFIX}")
    print(f"Resumable stream backend: {settings.RESUMABLE_STREAM_BACKEND}")

    # Tables are created in the application lifespan
    uvicorn.run(
        "marketingvoice.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.LOG_LEVEL.lower()
    )
