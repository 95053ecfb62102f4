"""HTTP surface for running analyses."""

import asyncio
import logging
import os
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from analysis_hub import __version__
from analysis_hub.adapters.registry import AdapterRegistry, default_registry
from analysis_hub.analysis.serialization import to_dict
from analysis_hub.config import Config
from analysis_hub.pipeline import build_adapters, run_analysis

logger = logging.getLogger(__name__)


class AnalyzeRequest(BaseModel):
    """Body of ``POST /analyze``."""

    targets: list[str] = Field(min_length=1)
    project_root: str
    adapters: list[str] | None = None


def create_app(config: Config | None = None, registry: AdapterRegistry | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Loaded configuration (default: built-in defaults)
        registry: Adapter registry (default: all built-in adapters)

    Returns:
        FastAPI application
    """
    config = config or Config()
    registry = registry or default_registry()

    app = FastAPI(
        title="analysis-hub",
        description="Unified static, formal and cloud code analysis",
        version=__version__,
    )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "analysis-hub"}

    @app.get("/")
    async def root():
        """Root endpoint with service info."""
        return {
            "service": "analysis-hub",
            "version": __version__,
            "endpoints": {
                "health": "/health",
                "adapters": "/adapters",
                "analyze": "/analyze",
            },
        }

    @app.get("/adapters")
    async def list_adapters():
        """Registered adapters with availability and version."""
        adapters = build_adapters(config, registry)
        versions = await asyncio.gather(*(adapter.get_version() for adapter in adapters.values()))
        return {
            "adapters": [
                {
                    "name": name,
                    "enabled": config.adapter(name).enabled,
                    "available": adapter.is_available(),
                    "version": version,
                    "languages": sorted(adapter.capabilities().languages),
                }
                for (name, adapter), version in zip(adapters.items(), versions)
            ]
        }

    @app.post("/analyze")
    async def analyze(request: AnalyzeRequest) -> dict[str, Any]:
        """Run an analysis and return the encoded result."""
        if not os.path.isdir(request.project_root):
            raise HTTPException(status_code=400, detail=f"project_root is not a directory: {request.project_root}")

        if request.adapters is not None:
            unknown = [name for name in request.adapters if name not in registry]
            if unknown:
                raise HTTPException(status_code=400, detail=f"Unknown adapter(s): {', '.join(unknown)}")

        adapters = build_adapters(config, registry, request.adapters)
        logger.info(f"Analyzing {len(request.targets)} targets in {request.project_root}")
        result = await run_analysis(request.targets, request.project_root, adapters, config=config)
        return to_dict(result)

    return app
