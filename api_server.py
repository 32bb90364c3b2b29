from __future__ import annotations  # FastAPI server exposing practice sessions

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.interviewer import router as interviewer_router
from api.profile import router as profile_router
from api.routes import router as sessions_router
from services.sessions import get_session_service


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:  # End running sessions on shutdown
    yield
    if get_session_service.cache_info().currsize:
        logger.info("Ending running sessions before shutdown")
        await get_session_service().shutdown()


app = FastAPI(title="Career Coach Practice API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"]
)
app.include_router(interviewer_router)
app.include_router(sessions_router)
app.include_router(profile_router)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
