"""Main entry point for running the FastAPI application with auto-reload."""
import uvicorn

from reportsearch.config import get_settings

if __name__ == "__main__":
    settings = get_settings()

    print(f"Starting {settings.app_name} v{settings.version}")
    print(f"Debug mode: {settings.debug}")
    print(f"Database: {settings.db.url.split('@')[-1] if '@' in settings.db.url else 'SQLite'}")
    print(f"Search index: {settings.search.url}/{settings.search.index_name}")
    print(f"Report directory: {settings.ingest.directory}")
    print(f"Auto-reload: {'Enabled' if settings.debug else 'Disabled'}")
    print("-" * 50)

    uvicorn.run(
        "reportsearch.api:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.debug,
        reload_dirs=["reportsearch"] if settings.debug else None,
        log_level=settings.logging.level.lower(),
    )
