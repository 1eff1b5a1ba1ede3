"""
Engine External Integrations
============================

Runtime services around the engine:
- YAML engine config with watchdog hot-reload
- Slack webhook notifications for outbox events
- APScheduler job driving the maintenance cycle
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from simengine.config import settings, EventType
from simengine.core import ConfigurationException
from simengine.shared.application import IEngineConfigProvider
from simengine.shared.domain import EngineConfig, GameEvent
from simengine.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for engine config file changes."""

    def __init__(self, config_manager: "EngineConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info("Engine config file changed", extra={"path": event.src_path})
            self.config_manager.reload()


class EngineConfigManager(IEngineConfigProvider):
    """
    Thread-safe engine configuration with hot-reload support.

    A reload that fails to parse keeps the previous configuration.
    """

    def __init__(self):
        self._config: Optional[EngineConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> EngineConfig:
        """
        Initial configuration load.

        Raises:
            ConfigurationException: the file exists but is not valid
        """
        self._path = path
        try:
            self._config = self._load_from_file(path)
        except (OSError, yaml.YAMLError, ValidationError) as e:
            raise ConfigurationException(
                f"Invalid engine config: {path}", {"error": str(e)}
            ) from e
        return self._config

    def _load_from_file(self, path: Path) -> EngineConfig:
        if not path.exists():
            logger.warning("Engine config file not found, using defaults", extra={"path": str(path)})
            return EngineConfig()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return EngineConfig(**data)

    def reload(self) -> bool:
        """Reload configuration from file."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except (OSError, yaml.YAMLError, ValidationError) as e:
            logger.error("Failed to reload engine config", extra={"error": str(e)})
            return False

        with self._lock:
            self._config = new_config
        logger.info("Engine configuration reloaded")
        return True

    def start_watching(self) -> None:
        """
        Start watching the config file for changes.

        Skipped when the file does not exist or inotify is unavailable.
        """
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "Config file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.parent), recursive=False)
            self._observer.start()
            logger.info("Started watching engine config", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static config", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def get_config(self) -> EngineConfig:
        with self._lock:
            if self._config is None:
                raise RuntimeError("Engine configuration not loaded")
            return self._config

    @property
    def config(self) -> EngineConfig:
        return self.get_config()


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Stops calling a failing webhook for a while.

    CLOSED passes requests, OPEN rejects them until ``recovery_timeout``
    has elapsed, then HALF_OPEN lets one through.
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


_EVENT_HEADERS = {
    EventType.SLA_BREACHED: "🚨 SLA Breach",
    EventType.INCIDENT_ESCALATED: "⚠️ Incident Escalated",
    EventType.ESCALATION_LEVEL_RAISED: "📈 Escalation Level Raised",
    EventType.SERVICE_STATUS_CHANGED: "🔧 Service Status Changed",
}

# Payload keys shown as message fields, in display order
_FIELD_LABELS = [
    ("incidentNumber", "Incident"),
    ("title", "Title"),
    ("serviceName", "Service"),
    ("previousPriority", "Previous Priority"),
    ("newPriority", "New Priority"),
    ("previousStatus", "Previous Status"),
    ("newStatus", "New Status"),
    ("escalationLevel", "Escalation Level"),
    ("teamName", "Team"),
    ("reason", "Reason"),
]


@dataclass
class SlackMessage:
    """Slack notification built from one game event."""
    event_id: str
    game_id: str
    event_type: str
    severity: str
    fields: List[tuple]
    timestamp: str

    @classmethod
    def from_event(cls, event: GameEvent) -> "SlackMessage":
        fields = [
            (label, str(event.payload[key]))
            for key, label in _FIELD_LABELS
            if event.payload.get(key) not in (None, "")
        ]
        return cls(
            event_id=event.id,
            game_id=event.game_id,
            event_type=event.event_type,
            severity=event.severity,
            fields=fields[:10],
            timestamp=event.created_at.isoformat(),
        )


class SlackClient:
    """
    Slack webhook client with circuit breaker and retry logic.

    Retries with exponential backoff; after repeated failures the circuit
    opens and notifications are skipped until it recovers.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self._channel = channel or settings.slack_channel
        self._timeout = timeout_seconds or settings.slack_timeout_seconds
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self._webhook_url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def _build_message(self, data: SlackMessage) -> Dict[str, Any]:
        """Build a Slack Block Kit message."""
        header = _EVENT_HEADERS.get(data.event_type, data.event_type.replace("_", " ").title())

        blocks: List[Dict[str, Any]] = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": header, "emoji": True}
            }
        ]
        if data.fields:
            blocks.append({
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*{label}:*\n{value}"}
                    for label, value in data.fields
                ]
            })
        blocks.append({
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": f"Game: {data.game_id} | Severity: {data.severity} | {data.timestamp}"
                }
            ]
        })

        return {"channel": self._channel, "blocks": blocks}

    async def send_event(self, event: GameEvent, max_retries: int = 3) -> bool:
        """
        Send one event to the Slack webhook.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._webhook_url:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack notification",
                extra={"event_id": event.id}
            )
            return False

        message = self._build_message(SlackMessage.from_event(event))

        for attempt in range(max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)

                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Slack notification sent",
                        extra={"event_id": event.id, "event_type": event.event_type}
                    )
                    return True

                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Slack notification failed",
                    extra={"error": str(e), "attempt": attempt + 1, "event_id": event.id}
                )

            if attempt < max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class EngineScheduler:
    """
    APScheduler wrapper for the periodic maintenance cycle.

    One job instance at a time; missed runs coalesce. A pass running past
    ``timeout_seconds`` is cancelled and logged, never queued behind.
    """

    def __init__(self, interval_seconds: int = 30, timeout_seconds: float = 25.0):
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    def _guarded(self, job_func: Callable[[], Awaitable[Any]]) -> Callable[[], Awaitable[None]]:
        async def run() -> None:
            try:
                await asyncio.wait_for(job_func(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    "Maintenance pass timed out, skipped",
                    extra={"timeout_seconds": self.timeout_seconds}
                )
        return run

    async def start(self, job_func: Callable[[], Awaitable[Any]]) -> None:
        """Start the scheduler with the given coroutine function."""
        if self._running:
            logger.warning("Engine scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._guarded(job_func),
            "interval",
            seconds=self.interval_seconds,
            id="engine_maintenance",
            name="Engine Maintenance Job",
            misfire_grace_time=self.interval_seconds,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info("Engine scheduler started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Engine scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
