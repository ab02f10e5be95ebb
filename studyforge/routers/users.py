from fastapi import APIRouter, Depends, HTTPException

from studyforge.core.config import Settings
from studyforge.core.deps import get_settings_dep, get_store
from studyforge.models.sessions import UserPublic
from studyforge.services.store import SessionStore

router = APIRouter(prefix="/api", tags=["users"])


@router.get("/user", response_model=UserPublic)
def get_current_user(
    store: SessionStore = Depends(get_store),
    settings: Settings = Depends(get_settings_dep),
):
    # V1 : un seul utilisateur de démo, pas d'authentification
    user = store.get_user(settings.DEMO_USER_ID)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return UserPublic(**user.model_dump(exclude={"password"}))
