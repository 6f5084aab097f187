"""Unified logging & OpenTelemetry setup.

Provides:
- Structured JSON logging with optional trace/span identifiers
- Config-derived log level
- Standard file output (project_root/logs/app.jsonl) with APP_LOG_DIR override
- FastAPI & HTTPX instrumentation hooks
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider

_EXCLUDED_RECORD_FIELDS = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module", "lineno",
    "funcName", "created", "msecs", "relativeCreated", "thread", "threadName", "processName", "process",
    "exc_info", "exc_text", "stack_info", "getMessage", "taskName",
}


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        span = trace.get_current_span()
        trace_id = span_id = None
        if span and span.is_recording():
            sc = span.get_span_context()
            if sc.is_valid:
                trace_id = f"{sc.trace_id:032x}"
                span_id = f"{sc.span_id:016x}"

        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process_id": os.getpid(),
        }
        if trace_id:
            entry["trace_id"] = trace_id
        if span_id:
            entry["span_id"] = span_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for k, v in record.__dict__.items():
            if k not in _EXCLUDED_RECORD_FIELDS:
                entry[f"extra_{k}"] = v
        return json.dumps(entry, default=str)


class OpenTelemetryConfig:
    """Configure OpenTelemetry + structured logging."""

    def __init__(self, service_name: str = "neochat", service_version: str = "0.0.0") -> None:
        from neochat.modules.config import config_manager

        settings = config_manager.app_settings
        self.service_name = service_name
        self.service_version = service_version
        self.is_development = settings.debug_mode or settings.environment.lower() in {"dev", "development"}
        self.log_level = self._get_log_level(settings.log_level)
        if settings.app_log_dir:
            self.logs_dir = Path(settings.app_log_dir)
        else:
            # This file: neochat/core/otel_config.py -> project root is 2 levels up
            self.logs_dir = Path(__file__).resolve().parents[2] / "logs"
        self.log_file = self.logs_dir / "app.jsonl"
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        self._setup_telemetry()
        self._setup_logging()

    @staticmethod
    def _get_log_level(level_name: str) -> int:
        level = getattr(logging, (level_name or "INFO").upper(), None)
        return level if isinstance(level, int) else logging.INFO

    def _setup_telemetry(self) -> None:
        resource = Resource.create(
            {
                SERVICE_NAME: self.service_name,
                SERVICE_VERSION: self.service_version,
                "environment": "development" if self.is_development else "production",
            }
        )
        trace.set_tracer_provider(TracerProvider(resource=resource))

    def _setup_logging(self) -> None:
        root = logging.getLogger()
        for h in root.handlers[:]:
            root.removeHandler(h)

        file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(self.log_level)
        root.addHandler(file_handler)
        root.setLevel(self.log_level)

        if self.is_development:
            console = logging.StreamHandler()
            console.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
            console.setLevel(logging.INFO)
            root.addHandler(console)

        # httpx logs every request line at INFO, including remote MCP URLs
        logging.getLogger("httpx").setLevel(logging.WARNING)
        LoggingInstrumentor().instrument(set_logging_format=False)

    def instrument_fastapi(self, app) -> None:  # noqa: ANN001
        FastAPIInstrumentor.instrument_app(app)

    def instrument_httpx(self) -> None:
        HTTPXClientInstrumentor().instrument()

    def get_log_file_path(self) -> Path:
        return self.log_file


# Global instance
otel_config: Optional[OpenTelemetryConfig] = None


def setup_opentelemetry(service_name: str = "neochat", service_version: str = "0.0.0") -> OpenTelemetryConfig:
    global otel_config
    otel_config = OpenTelemetryConfig(service_name, service_version)
    return otel_config


def get_otel_config() -> Optional[OpenTelemetryConfig]:
    return otel_config
