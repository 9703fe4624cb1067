"""Server-side telemetry events."""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Protocol


logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    """Protocol for telemetry sinks."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Emit a telemetry event."""
        ...


class LoggingTelemetrySink:
    """Default sink that logs telemetry events."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Log telemetry event."""
        logger.info("TELEMETRY %s: %s", event_name, data)


@dataclass
class InitServedEvent:
    """init_served: a client (re)joined and got its state."""

    player_id: str
    balance: int
    games_played: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SpinProcessedEvent:
    """spin_processed: a spin was resolved and saved."""

    player_id: str
    round_id: str
    config_hash: str
    wager: int
    category: str
    result: str  # "win" | "loss"
    payout: int
    balance_before: int
    balance_after: int
    lock_acquire_ms: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SpinRejectedEvent:
    """spin_rejected: a spin was refused before resolution."""

    player_id: str
    reason: str  # "ROUND_IN_PROGRESS" | "INVALID_WAGER" | "INSUFFICIENT_FUNDS"
    wager: int | None
    balance: int | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class StateResetEvent:
    """state_reset: the player started over."""

    player_id: str
    previous_balance: int
    previous_games_played: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TelemetryService:
    """Service for emitting server telemetry events."""

    def __init__(self, sink: TelemetrySink | None = None):
        self._sink = sink or LoggingTelemetrySink()
        self._sink_errors = 0

    def set_sink(self, sink: TelemetrySink) -> None:
        """Set the telemetry sink (useful for testing)."""
        self._sink = sink

    def _safe_emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Emit event; sink failures must not break requests."""
        try:
            self._sink.emit(event_name, data)
        except Exception as e:
            self._sink_errors += 1
            logger.warning(
                "Telemetry sink error (count=%d): %s - %s",
                self._sink_errors,
                event_name,
                str(e),
            )

    def emit_init_served(self, event: InitServedEvent) -> None:
        self._safe_emit("init_served", event.to_dict())

    def emit_spin_processed(self, event: SpinProcessedEvent) -> None:
        self._safe_emit("spin_processed", event.to_dict())

    def emit_spin_rejected(self, event: SpinRejectedEvent) -> None:
        self._safe_emit("spin_rejected", event.to_dict())

    def emit_state_reset(self, event: StateResetEvent) -> None:
        self._safe_emit("state_reset", event.to_dict())


# Global instance
telemetry_service = TelemetryService()
