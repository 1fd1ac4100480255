from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Literal, Optional
from diet_agent.core.models import ChatHistoryItem, PurchaseHistoryItem, RecipeHistoryItem

HistoryKind = Literal["chats", "recipes", "purchases"]


class HistoryStore(ABC):
    """Three bounded, newest-first lists. Loaded once, saved on every change."""

    @abstractmethod
    def add_chat(self, query: str, plan: str, messages: Optional[list] = None) -> ChatHistoryItem: ...
    @abstractmethod
    def add_recipe(self, **fields) -> RecipeHistoryItem: ...
    @abstractmethod
    def add_purchase(self, **fields) -> PurchaseHistoryItem: ...
    @abstractmethod
    def clear(self, kind: Optional[HistoryKind] = None) -> None: ...
    @abstractmethod
    def recent_chats(self, limit: int = 10) -> List[ChatHistoryItem]: ...
    @abstractmethod
    def recent_recipes(self, limit: int = 20) -> List[RecipeHistoryItem]: ...
    @abstractmethod
    def recent_purchases(self, limit: int = 10) -> List[PurchaseHistoryItem]: ...
