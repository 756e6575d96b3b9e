# src/stagegate/api/schemas.py
"""Modelos de entrada da API (pydantic)."""

from typing import Optional

from pydantic import BaseModel

from stagegate.core.pipeline.pipeline import TriggerEvent


class TriggerEventBody(BaseModel):
    repository: str
    branch: str
    commit: str
    actor: Optional[str] = None

    def to_event(self, default_actor: str = "") -> TriggerEvent:
        return TriggerEvent(
            repository=self.repository,
            branch=self.branch,
            commit=self.commit,
            actor=self.actor or default_actor,
        )
