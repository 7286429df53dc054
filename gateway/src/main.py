from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from gateway.src.config import get_settings
from gateway.src.db.database import init_db
from gateway.src.routes import health_router, pipelines_router, webhooks_router

settings = get_settings()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting ferroci gateway")
    await init_db()
    yield
    logger.info("Shutting down ferroci gateway")

app = FastAPI(
    title="ferroci",
    description="Build, test and lint pipelines for Rust repositories",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(pipelines_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")

@app.get("/")
async def root():
    return {
        "name": "ferroci",
        "version": "0.1.0",
        "docs": "/docs"
    }

def run():
    """Console entry point: serve the gateway with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
