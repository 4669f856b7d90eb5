from typing import Optional


class ScanDebouncer:
    """Suppresses a repeat of the last accepted payload inside a cooldown.

    Times are milliseconds from any monotonic source. A different payload is
    always accepted and becomes the new reference.
    """

    def __init__(self, cooldown_ms: int = 3000):
        self.cooldown_ms = cooldown_ms
        self._last_payload: Optional[str] = None
        self._last_time_ms: float = 0.0

    def accept(self, payload: str, now_ms: float) -> bool:
        if self._last_payload == payload and (now_ms - self._last_time_ms) < self.cooldown_ms:
            return False
        self._last_payload = payload
        self._last_time_ms = now_ms
        return True

    def reset(self) -> None:
        self._last_payload = None
        self._last_time_ms = 0.0
