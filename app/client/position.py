"""Device position source used by the maps controller."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from app.schemas.geo import Coordinates


class PermissionState(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


class PositionErrorCode(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    POSITION_UNAVAILABLE = "POSITION_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    UNSUPPORTED = "UNSUPPORTED"
    UNKNOWN = "UNKNOWN"


POSITION_ERROR_MESSAGES = {
    PositionErrorCode.PERMISSION_DENIED: "Location access denied by user",
    PositionErrorCode.POSITION_UNAVAILABLE: "Location information unavailable",
    PositionErrorCode.TIMEOUT: "Location request timed out",
    PositionErrorCode.UNSUPPORTED: "Geolocation is not supported by this device",
    PositionErrorCode.UNKNOWN: "Unknown location error",
}


class PositionError(Exception):
    def __init__(self, code: PositionErrorCode, message: Optional[str] = None):
        self.code = code
        self.message = message or POSITION_ERROR_MESSAGES[code]
        super().__init__(self.message)


@dataclass(frozen=True)
class PositionOptions:
    """Timeout and maximum cached-fix age are in milliseconds."""
    enable_high_accuracy: bool = True
    timeout_ms: int = 10000
    maximum_age_ms: int = 60000


# One-shot lookups accept an older fix than continuous tracking does
SINGLE_FIX_OPTIONS = PositionOptions(enable_high_accuracy=True, timeout_ms=10000, maximum_age_ms=60000)
TRACKING_OPTIONS = PositionOptions(enable_high_accuracy=True, timeout_ms=15000, maximum_age_ms=30000)

PositionCallback = Callable[[Coordinates], None]
PositionErrorCallback = Callable[[PositionError], None]


class PositionProvider(Protocol):
    """What the controller needs from a device geolocation API."""

    async def permission_state(self) -> PermissionState: ...

    async def get_current_position(self, options: PositionOptions) -> Coordinates:
        """Return a fix or raise PositionError."""
        ...

    def watch_position(
        self,
        on_position: PositionCallback,
        on_error: PositionErrorCallback,
        options: PositionOptions,
    ) -> int:
        """Start a continuous watch and return its id."""
        ...

    def clear_watch(self, watch_id: int) -> None: ...
