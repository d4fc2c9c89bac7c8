# core/uploads/throttle.py
from typing import Optional


def can_emit(now: float, last_emission_at: Optional[float], window_ms: float) -> bool:
    """
    Decide whether a progress notification may go out at `now` (ms).

    The first observation (`last_emission_at` is None) always qualifies, and the
    window boundary is inclusive. Stateless: the caller records the new
    emission time, and only when something was actually emitted.
    A clock that went backwards just reads as "not yet".
    """
    if last_emission_at is None:
        return True
    return now - last_emission_at >= window_ms
