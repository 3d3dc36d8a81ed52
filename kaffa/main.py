"""
Kaffa Coffee Clock API.
Run with: uvicorn kaffa.main:app
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from kaffa.api.routes import router
from kaffa.config import LOG_LEVEL
from kaffa.core.database import init_db

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Kaffa Coffee Clock API",
    description="Caffeine absorption/decay tracking with cortisol and sleep windows",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(router)


@app.get("/health")
def health_check():
    return {"status": "healthy"}
