from __future__ import annotations

import json
import os
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, Optional

from loguru import logger

from diet_agent.config import Settings
from diet_agent.services.repo.json_repo import _locked  # reuse existing cross-platform lock


class MetricsLogger:
    """Append-only JSONL logger for latency metrics under data/.

    Writes one JSON object per line with fields:
      - ts: ISO timestamp (UTC)
      - kind: "latency"
      - name: short name (e.g., "meal_plan_task", "chat_render")
      - origin: "backend" | "frontend"
      - duration_ms: float
      - extra: optional dict with contextual fields (attempts, source, outcome)
    """

    def __init__(self, settings: Optional[Settings] = None, filename: str = "latency_log.jsonl") -> None:
        self.settings = settings or Settings()
        self.path = os.path.join(self.settings.data_dir, filename)

    def log_latency(
        self,
        name: str,
        duration_ms: float,
        origin: str,
        extra: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> None:
        entry: Dict[str, Any] = {
            "ts": datetime.utcnow().isoformat(),
            "kind": "latency",
            "name": name,
            "origin": origin,
            "duration_ms": round(float(duration_ms), 3),
        }
        if user_id:
            entry["user"] = user_id
        if extra:
            entry["extra"] = extra
        line = (json.dumps(entry, ensure_ascii=False, separators=(",", ":"), default=str) + "\n").encode("utf-8")
        try:
            with _locked(self.path) as f:
                f.seek(0, os.SEEK_END)
                f.write(line)
                f.flush()
                os.fsync(f.fileno())
        except Exception as e:
            # Metrics must never break a user flow.
            logger.warning("Could not record metric {}: {}", name, e)

    @contextmanager
    def track(self, name: str, extra: Optional[Dict[str, Any]] = None, user_id: Optional[str] = None) -> Iterator[Dict[str, Any]]:
        """Time a backend block. Callers may add fields to the yielded dict."""
        fields: Dict[str, Any] = dict(extra or {})
        t0 = time.perf_counter()
        try:
            yield fields
        finally:
            self.log_latency(name, (time.perf_counter() - t0) * 1000.0, origin="backend", extra=fields, user_id=user_id)
