"""Search service configuration loaded from environment variables."""
from typing import Any

import structlog
from pydantic import ValidationError, ValidationInfo, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Search service configuration loaded from environment variables.

    A malformed value never fails startup: the field falls back to its
    default. Numeric values outside their range are clamped.

    Attributes:
        host: Bind address for the API server.
        port: Port number for the API server.
        debug: Enable debug logging and API documentation.
        log_json: Render logs as JSON lines; otherwise human-readable.
        cors_origins_raw: Raw comma-separated CORS origins string.
        shutdown_timeout: Seconds to wait for graceful shutdown.
        key: API key for authenticating requests; empty disables auth.
        workspace_roots_raw: Comma-separated workspace root directories.
        include_files: Index workspace files.
        include_symbols: Index workspace and document symbols.
        include_commands: Index host actions.
        include_text: Search file contents for non-empty queries.
        activity_enabled: Boost recently used files and symbols.
        activity_weight: Strength of the recency boost, 0 to 1.
        max_results: Maximum results returned per search.
        max_text_results: Maximum text matches per file.
        fuzzy_library: Scorer used for ranking.
        preview_enabled: Display hint echoed in search responses.
        exclusions_raw: Comma-separated extra exclusion patterns.
        watch_enabled: Watch workspace roots for file changes.
        event_debounce_ms: Debounce window for filesystem events.
        activity_debounce_ms: Debounce window for activity tracking.
        index_update_debounce_ms: Debounce window for incremental index updates.
        symbol_refresh_debounce_ms: Debounce window for workspace symbol refresh.
        document_symbol_refresh_debounce_ms: Debounce window for document symbol refresh.
        event_queue_size: Maximum size of each subscriber queue.
        event_max_subscribers: Maximum number of concurrent subscribers.
    """

    model_config = SettingsConfigDict(
        env_prefix="EVERYWHERE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    log_json: bool = True
    cors_origins_raw: str = "http://localhost"
    shutdown_timeout: float = 30.0
    key: str = ""

    workspace_roots_raw: str = "."
    include_files: bool = True
    include_symbols: bool = True
    include_commands: bool = True
    include_text: bool = True
    activity_enabled: bool = True
    activity_weight: float = 0.5
    max_results: int = 100
    max_text_results: int = 20
    fuzzy_library: str = "rapidfuzz"
    preview_enabled: bool = True
    exclusions_raw: str = ""

    watch_enabled: bool = True
    event_debounce_ms: int = 50
    activity_debounce_ms: int = 500
    index_update_debounce_ms: int = 3500
    symbol_refresh_debounce_ms: int = 2000
    document_symbol_refresh_debounce_ms: int = 3000
    event_queue_size: int = 100
    event_max_subscribers: int = 100

    @field_validator("*", mode="wrap")
    @classmethod
    def _default_on_error(cls, value: Any, handler: Any, info: ValidationInfo) -> Any:
        try:
            return handler(value)
        except ValidationError:
            field = cls.model_fields[info.field_name]
            logger.warning("invalid_setting", setting=info.field_name, value=str(value))
            return field.get_default(call_default_factory=True)

    @field_validator("activity_weight")
    @classmethod
    def _clamp_weight(cls, value: float) -> float:
        return min(max(value, 0.0), 1.0)

    @field_validator("max_results", "max_text_results", "event_queue_size", "event_max_subscribers")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        return max(value, 1)

    @field_validator(
        "event_debounce_ms",
        "activity_debounce_ms",
        "index_update_debounce_ms",
        "symbol_refresh_debounce_ms",
        "document_symbol_refresh_debounce_ms",
    )
    @classmethod
    def _not_negative(cls, value: int) -> int:
        return max(value, 0)

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string.

        Returns:
            List of allowed origin URLs.
        """
        return [
            origin.strip()
            for origin in self.cors_origins_raw.split(",")
            if origin.strip()
        ]

    @computed_field
    @property
    def workspace_roots(self) -> list[str]:
        """Parse workspace roots from comma-separated string.

        Returns:
            List of workspace root directories.
        """
        return [
            root.strip()
            for root in self.workspace_roots_raw.split(",")
            if root.strip()
        ]

    @computed_field
    @property
    def exclusions(self) -> list[str]:
        """Parse user exclusion patterns from comma-separated string.

        Returns:
            Patterns appended after the built-in exclusions.
        """
        return [
            pattern.strip()
            for pattern in self.exclusions_raw.split(",")
            if pattern.strip()
        ]

    def updated(self, **changes: Any) -> "Settings":
        """Copy of these settings with some values replaced and re-validated."""
        values = self.model_dump(exclude={"cors_origins", "workspace_roots", "exclusions"})
        values.update(changes)
        return type(self)(**values)
