"""Per-request context carried on ``request.state``."""

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class RequestContext:
    """Minimal request context populated by RequestIDMiddleware."""

    request_id: str
    method: str
    path: str
    started_at: float = field(default_factory=time.perf_counter)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000
