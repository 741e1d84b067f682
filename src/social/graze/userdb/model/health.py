from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class PoolState(str, Enum):
    """
    Lifecycle states of the database connection pool.

    CONSTRUCTING and INITIALIZING are startup states. READY is reached once the schema has been bootstrapped. DEGRADED
    is only ever reported by a health probe when the database cannot be reached; it is informational and does not
    change how the pool is used.
    """

    CONSTRUCTING = "constructing"
    INITIALIZING = "initializing"
    READY = "ready"
    DEGRADED = "degraded"


class HealthStatus(BaseModel):
    """Result of a single database health probe. Recomputed on every request and never stored."""

    healthy: bool
    state: PoolState
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_response(self):
        return {
            "status": "healthy" if self.healthy else "degraded",
            "timestamp": self.checked_at.isoformat(),
            "services": {
                "api": "running",
                "database": "connected" if self.healthy else "disconnected",
            },
        }
