"""Client engine configuration."""

from pydantic import BaseModel, Field, validator

# Values the embed snippet ships with before a real project id is filled in
PLACEHOLDER_PROJECT_IDS = (
    "your-project-id",
    "YOUR_ACTUAL_PROJECT_ID",
    "missing-project-id",
    "error-getting-project-id",
)


class TrackerConfig(BaseModel):
    """Configuration handed to the client engine by the host page."""

    # Endpoints
    ingest_url: str = Field(default="", description="Tracking ingestion endpoint")
    rules_url: str = Field(default="", description="Content rule query endpoint")

    # Feature switches
    track_clicks: bool = Field(default=True, description="Capture click events")
    track_scrolls: bool = Field(default=True, description="Capture scroll depth and section views")
    track_forms: bool = Field(default=True, description="Capture form submissions")
    track_mouse_movement: bool = Field(default=False, description="Capture sampled pointer movement")
    sample_rate: float = Field(default=0.05, ge=0.0, le=1.0, description="Probability of keeping a pointer sample")

    # Session and retry policy
    session_timeout_seconds: float = Field(default=30 * 60, description="Idle time after which a session rotates")
    heartbeat_seconds: float = Field(default=60, description="Interval for refreshing last activity")
    pending_capacity: int = Field(default=10, ge=1, description="Maximum queued undelivered events")
    pending_ttl_seconds: float = Field(default=24 * 60 * 60, description="Age after which a queued event is dropped")

    # Pointer batching and scroll throttling
    mouse_flush_seconds: float = Field(default=5, description="Interval for flushing pointer samples")
    mouse_batch_size: int = Field(default=50, ge=1, description="Sample count that forces an early flush")
    scroll_throttle_seconds: float = Field(default=1, description="Minimum time between scroll evaluations")

    storage_prefix: str = Field(default="utm_cm_", description="Namespace for storage keys")
    request_timeout_seconds: float = Field(default=10, description="Timeout for HTTP requests")

    @validator("ingest_url", "rules_url")
    def strip_url(cls, v: str) -> str:
        return v.strip()

    @property
    def delivery_enabled(self) -> bool:
        """Delivery is off until a real ingestion endpoint is configured."""
        if not self.ingest_url:
            return False
        return not any(placeholder in self.ingest_url for placeholder in PLACEHOLDER_PROJECT_IDS)

    @classmethod
    def for_project(cls, project_id: str, **overrides) -> "TrackerConfig":
        """Build a config pointing at a hosted project's functions."""
        base = f"https://{project_id}.supabase.co/functions/v1"
        return cls(ingest_url=f"{base}/utm-tracking", rules_url=f"{base}/utm-content", **overrides)
