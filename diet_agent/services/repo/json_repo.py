from __future__ import annotations

import io
import json
import os
import tempfile
import uuid
from contextlib import contextmanager
from datetime import date
from typing import Iterator, List, Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel

from diet_agent.config import Settings
from diet_agent.core.models import ChatHistoryItem, ChatMessage, PurchaseHistoryItem, RecipeHistoryItem
from diet_agent.services.exceptions import RepoError
from .base import HistoryKind, HistoryStore

M = TypeVar("M", bound=BaseModel)

MAX_CHATS = 50
MAX_RECIPES = 100
MAX_PURCHASES = 50


# Cross-platform file lock (fcntl for *nix; msvcrt for Windows)
@contextmanager
def _locked(path: str) -> Iterator[io.FileIO]:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    f = open(path, "a+b")  # create if missing
    try:
        try:
            import fcntl  # type: ignore
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            locker = "fcntl"
        except ImportError:
            import msvcrt  # type: ignore
            msvcrt.locking(f.fileno(), msvcrt.LK_LOCK, 1)
            locker = "msvcrt"
    except OSError as e:
        f.close()
        raise RepoError(f"Could not lock file {path}: {e}") from e

    try:
        yield f
    finally:
        try:
            if locker == "fcntl":
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
            else:
                msvcrt.locking(f.fileno(), msvcrt.LK_UNLCK, 1)
        except OSError as e:
            logger.warning("Could not unlock {}: {}", path, e)
        f.close()


def _atomic_write(path: str, data: bytes) -> None:
    d = os.path.dirname(path) or "."
    os.makedirs(d, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=d)
    try:
        with os.fdopen(fd, "wb") as w:
            w.write(data)
            w.flush()
            os.fsync(w.fileno())
        os.replace(tmp, path)
    except OSError as e:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise RepoError(f"Atomic write failed for {path}: {e}") from e


def _today() -> str:
    return date.today().isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


class JSONHistoryStore(HistoryStore):
    """
    Chat, recipe and purchase history, one JSON array file per list.

    Files are read once at construction and rewritten atomically after every
    change. Lists are newest-first and capped (chats 50, recipes 100, purchases 50).
    """

    def __init__(self, settings: Settings):
        self._paths = {
            "chats": settings.history_chats_file,
            "recipes": settings.history_recipes_file,
            "purchases": settings.history_purchases_file,
        }
        self.chats: List[ChatHistoryItem] = self._load("chats", ChatHistoryItem)
        self.recipes: List[RecipeHistoryItem] = self._load("recipes", RecipeHistoryItem)
        self.purchases: List[PurchaseHistoryItem] = self._load("purchases", PurchaseHistoryItem)

    def _load(self, kind: HistoryKind, model: Type[M]) -> List[M]:
        path = self._paths[kind]
        try:
            if not os.path.exists(path):
                return []
            with _locked(path) as f:
                f.seek(0)
                raw = f.read() or b"[]"
            rows = json.loads(raw.decode("utf-8"))
            return [model.model_validate(r) for r in rows]
        except (OSError, ValueError) as e:
            raise RepoError(f"Failed to load {kind} history from {path}: {e}") from e

    def _save(self, kind: HistoryKind) -> None:
        rows = getattr(self, kind)
        payload = json.dumps(
            [r.model_dump(mode="json") for r in rows], ensure_ascii=False, separators=(",", ":")
        ).encode("utf-8")
        _atomic_write(self._paths[kind], payload)

    # ---- Writers -------------------------------------------------------------

    def add_chat(self, query: str, plan: str, messages: Optional[List[ChatMessage]] = None) -> ChatHistoryItem:
        item = ChatHistoryItem(id=_new_id(), date=_today(), query=query, plan=plan, messages=messages or [])
        self.chats = [item] + self.chats[: MAX_CHATS - 1]
        self._save("chats")
        return item

    def add_recipe(self, **fields) -> RecipeHistoryItem:
        item = RecipeHistoryItem(id=_new_id(), saved_date=_today(), **fields)
        self.recipes = [item] + self.recipes[: MAX_RECIPES - 1]
        self._save("recipes")
        return item

    def add_purchase(self, **fields) -> PurchaseHistoryItem:
        item = PurchaseHistoryItem(id=_new_id(), date=_today(), **fields)
        self.purchases = [item] + self.purchases[: MAX_PURCHASES - 1]
        self._save("purchases")
        return item

    def clear(self, kind: Optional[HistoryKind] = None) -> None:
        for k in ("chats", "recipes", "purchases"):
            if kind is None or kind == k:
                setattr(self, k, [])
                path = self._paths[k]
                try:
                    if os.path.exists(path):
                        os.remove(path)
                except OSError as e:
                    raise RepoError(f"Failed to clear {k} history at {path}: {e}") from e

    # ---- Readers -------------------------------------------------------------

    def recent_chats(self, limit: int = 10) -> List[ChatHistoryItem]:
        return self.chats[:limit]

    def recent_recipes(self, limit: int = 20) -> List[RecipeHistoryItem]:
        return self.recipes[:limit]

    def recent_purchases(self, limit: int = 10) -> List[PurchaseHistoryItem]:
        return self.purchases[:limit]
