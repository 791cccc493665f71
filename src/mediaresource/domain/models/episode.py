from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class Episode:
    id: str
    order: int
    label: str
