from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from diet_agent.api.deps import get_history_store
from diet_agent.core.models import ChatHistoryItem, FormIngredient, PurchaseHistoryItem, RecipeHistoryItem
from diet_agent.services.exceptions import RepoError
from diet_agent.services.repo.base import HistoryKind
from diet_agent.services.repo.json_repo import JSONHistoryStore

router = APIRouter(tags=["history"])


class HistoryResponse(BaseModel):
    chats: List[ChatHistoryItem]
    recipes: List[RecipeHistoryItem]
    purchases: List[PurchaseHistoryItem]


class RecipeIn(BaseModel):
    title: str = Field(..., min_length=1)
    difficulty: str = "Medium"
    cooking_time: str = ""
    rating: Optional[float] = Field(None, ge=0, le=5)
    tags: List[str] = Field(default_factory=list)
    plan_id: Optional[str] = None
    ingredients: List[FormIngredient] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)


class PurchaseIn(BaseModel):
    plan: str = Field(..., min_length=1)
    items: int = Field(..., ge=0)
    total: float = Field(..., ge=0)
    supermarket: Optional[str] = None
    status: str = Field("completed", pattern="^(completed|pending|failed)$")


@router.get("/api/v1/history", response_model=HistoryResponse)
def get_history(store: JSONHistoryStore = Depends(get_history_store)):
    return HistoryResponse(
        chats=store.recent_chats(),
        recipes=store.recent_recipes(),
        purchases=store.recent_purchases(),
    )


@router.get("/api/v1/history/chats", response_model=List[ChatHistoryItem])
def list_chats(limit: int = Query(10, ge=1, le=50), store: JSONHistoryStore = Depends(get_history_store)):
    return store.recent_chats(limit)


@router.get("/api/v1/history/recipes", response_model=List[RecipeHistoryItem])
def list_recipes(limit: int = Query(20, ge=1, le=100), store: JSONHistoryStore = Depends(get_history_store)):
    return store.recent_recipes(limit)


@router.get("/api/v1/history/purchases", response_model=List[PurchaseHistoryItem])
def list_purchases(limit: int = Query(10, ge=1, le=50), store: JSONHistoryStore = Depends(get_history_store)):
    return store.recent_purchases(limit)


@router.post("/api/v1/history/recipes", response_model=RecipeHistoryItem)
def save_recipe(recipe: RecipeIn, store: JSONHistoryStore = Depends(get_history_store)):
    try:
        return store.add_recipe(**recipe.model_dump())
    except RepoError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/v1/history/purchases", response_model=PurchaseHistoryItem)
def save_purchase(purchase: PurchaseIn, store: JSONHistoryStore = Depends(get_history_store)):
    try:
        return store.add_purchase(**purchase.model_dump())
    except RepoError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/api/v1/history")
def clear_history(store: JSONHistoryStore = Depends(get_history_store)):
    try:
        store.clear()
    except RepoError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True}


@router.delete("/api/v1/history/{kind}")
def clear_history_kind(kind: HistoryKind, store: JSONHistoryStore = Depends(get_history_store)):
    try:
        store.clear(kind)
    except RepoError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True}
