"""JSONL event log for ingestion, briefings and model usage."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    contact_id: int | None = None
    model: str | None = None
    duration_ms: float | None = None
    dry_run: bool | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


class JSONLLogger:
    """Logger that writes structured logs in JSONL format."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "logs.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".grove" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        """Write a log entry to the file."""
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

    def log(
        self,
        event: str,
        *,
        contact_id: int | None = None,
        model: str | None = None,
        duration_ms: float | None = None,
        dry_run: bool | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            contact_id=contact_id,
            model=model,
            duration_ms=duration_ms,
            dry_run=dry_run,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_ai_usage(
        self,
        function: str,
        model: str,
        input_tokens: int | None,
        output_tokens: int | None,
        *,
        duration_ms: float | None = None,
    ) -> None:
        """Log token usage of a model call."""
        self.log(
            "ai_usage",
            model=model,
            duration_ms=duration_ms,
            function=function,
            input_tokens=input_tokens if isinstance(input_tokens, int) else 0,
            output_tokens=output_tokens if isinstance(output_tokens, int) else 0,
        )

    def log_ingest(
        self,
        result: dict[str, Any],
        *,
        dry_run: bool,
        contact_id: int | None = None,
    ) -> None:
        """Log a preview or commit of an ingestion."""
        self.log(
            "ingest_preview" if dry_run else "ingest_commit",
            contact_id=contact_id,
            dry_run=dry_run,
            is_new_contact=result.get("isNewContact"),
            updates=result.get("updates"),
            skipped=result.get("skipped"),
        )

    def log_error(self, event: str, error: Exception, **extra: Any) -> None:
        """Log a failure with its error kind."""
        self.log(
            event,
            error=str(error),
            kind=getattr(error, "kind", type(error).__name__),
            **extra,
        )


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
