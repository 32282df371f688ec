"""API routes."""

from fastapi import APIRouter

from movescore.api import classifiers, moves

api_router = APIRouter()

api_router.include_router(moves.router, prefix="/moves", tags=["Moves"])
api_router.include_router(classifiers.router, prefix="/classifiers", tags=["Classifiers"])
