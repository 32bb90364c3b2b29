"""Profile collaborator routes backed by SQLite."""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from api.schemas import ProfileSaveReq
from config import settings
from storage.profiles import ProfileStore


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profile")


@lru_cache(maxsize=1)
def get_profile_store() -> ProfileStore:  # FastAPI dependency
    return ProfileStore(Path(settings.DB_PATH))


@router.get("")
def read_profile(uid: Optional[str] = None, store: ProfileStore = Depends(get_profile_store)) -> Dict[str, Any]:
    if not uid:
        raise HTTPException(status_code=400, detail="Missing or invalid UID")
    return store.get_or_default(uid)


@router.post("")
def save_profile(req: ProfileSaveReq, store: ProfileStore = Depends(get_profile_store)) -> Dict[str, Any]:
    if not req.uid:
        raise HTTPException(status_code=400, detail="Missing UID")
    if req.profileData is None:
        raise HTTPException(status_code=400, detail="Missing profile data")
    profile = store.upsert(req.uid, req.profileData)
    logger.info("Saved profile uid=%s fields=%d", req.uid, len(req.profileData))
    return {"message": "Profile saved successfully", "profile": profile}
