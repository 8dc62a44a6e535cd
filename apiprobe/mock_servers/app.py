"""FastAPI mock resource sites for exercising the prober locally."""

import asyncio
import os
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Response


LIST_PATH = "/api.php/provide/vod"


def create_mock_site(
    name: str,
    items: int = 20,
    status_code: int = 200,
    latency_ms: int = 0,
    malformed: bool = False
) -> FastAPI:
    """
    Create a mock resource site serving the video list API.

    Args:
        name: Site name (e.g., "site-a")
        items: Number of entries returned in ``list``
        status_code: Status returned by the list API; non-2xx yields an error body
        latency_ms: Delay before responding, in milliseconds
        malformed: Return a 200 response whose body is not JSON

    Returns:
        FastAPI application
    """
    app = FastAPI(title=f"Mock Site - {name}")

    @app.get(LIST_PATH)
    async def provide_vod(ac: Optional[str] = None, pg: int = 1):
        """Paged video list, shaped like a typical resource-site API."""
        if latency_ms > 0:
            await asyncio.sleep(latency_ms / 1000.0)

        if status_code >= 400:
            raise HTTPException(status_code=status_code, detail="Simulated error")

        if malformed:
            return Response(content="<html>maintenance</html>", media_type="application/json")

        entries = [
            {
                "vod_id": (pg - 1) * items + i + 1,
                "vod_name": f"{name} video {(pg - 1) * items + i + 1}",
                "type_name": "movie",
                "vod_time": "2024-01-01 00:00:00",
            }
            for i in range(items)
        ]

        return {
            "code": 1,
            "msg": "data list",
            "page": pg,
            "pagecount": 1 if items else 0,
            "limit": str(items),
            "total": items,
            "list": entries,
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "server": name}

    return app


def create_healthy_site() -> FastAPI:
    """Site returning a full list page."""
    return create_mock_site(
        name="site-healthy",
        items=int(os.getenv("ITEMS", 20)),
        latency_ms=int(os.getenv("EXTRA_LATENCY_MS", 0))
    )


def create_empty_site() -> FastAPI:
    """Site answering 200 with an empty list."""
    return create_mock_site(name="site-empty", items=0)


def create_broken_site() -> FastAPI:
    """Site failing every request with a 5xx."""
    return create_mock_site(name="site-broken", status_code=int(os.getenv("STATUS_CODE", 500)))


def create_app() -> FastAPI:
    """
    Factory function for uvicorn --factory.

    Reads SITE_NAME from environment to determine which site to create.
    Defaults to the healthy site if not specified.
    """
    site_name = os.getenv("SITE_NAME", "healthy")

    site_map = {
        "healthy": create_healthy_site,
        "empty": create_empty_site,
        "broken": create_broken_site,
    }

    factory = site_map.get(site_name, create_healthy_site)
    return factory()


def serve(app: FastAPI, port: int, host: str = "127.0.0.1") -> None:
    """Run a mock site in the foreground."""
    uvicorn.run(app, host=host, port=port, log_level="error")


if __name__ == "__main__":
    serve(create_app(), port=int(os.getenv("PORT", 8001)))
