# Main Router - app/api/v1/router.py
from fastapi import APIRouter, Depends
from app.api.dependencies.decks import ensure_user_has_default_deck
from app.api.v1.routes.health.health import router as health_router
from app.api.v1.routes.decks.decks import router as decks_router
from app.api.v1.routes.flashcards.flashcards import router as flashcards_router
from app.api.v1.routes.tags.tags import router as tags_router
from app.api.v1.routes.generations.generations import router as generations_router
from app.api.v1.routes.user.user import router as user_router

router = APIRouter()

# Public routes (no authentication)
router.include_router(health_router)

# Authenticated, but must not provision a default deck for an account being deleted
router.include_router(user_router)

# Protected routes (authenticated; default deck provisioned on first use)
protected_router = APIRouter(dependencies=[Depends(ensure_user_has_default_deck)])
protected_router.include_router(decks_router)
protected_router.include_router(flashcards_router)
protected_router.include_router(tags_router)
protected_router.include_router(generations_router)

# Include protected router in main router
router.include_router(protected_router)
