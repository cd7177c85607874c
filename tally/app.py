"""FastAPI entry point for tally."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tally import __version__
from tally.api.nodes import get_registry, router as nodes_router
from tally.api.pipelines import router as pipelines_router
from tally.api.tables import router as tables_router
from tally.config import configure_logging, get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    registry = get_registry()
    logger.info("tally %s ready with %d node types", __version__, len(registry.node_types))
    yield


app = FastAPI(title="tally", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(nodes_router)
app.include_router(pipelines_router)
app.include_router(tables_router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": __version__}


def main():
    import uvicorn

    settings = get_settings()
    uvicorn.run("tally.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
