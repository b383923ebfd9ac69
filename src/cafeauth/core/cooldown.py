"""Login cooldown policy.

Pure functions, no I/O. Every `threshold` consecutive failures start a
lockout and raise the lockout level by one. The lockout for level L lasts
L * step seconds:

- level 1: 120 seconds
- level 2: 240 seconds
- level 3: 360 seconds
- ...
- capped at max_seconds (when max_seconds > 0)

The level is never lowered by the policy; only an explicit reset (successful
login or admin unlock) forgets it.
"""

import math
from dataclasses import dataclass

from cafeauth.app.config import get_settings

LOCKOUT_THRESHOLD = 3
LOCKOUT_STEP_SECONDS = 120
LOCKOUT_MAX_SECONDS = 3600


@dataclass(frozen=True)
class CooldownDecision:
    """Outcome of one more failure.

    attempts is the counter to persist (back to 0 when a lockout starts).
    """

    attempts: int
    lockout_level: int
    lockout_seconds: int

    @property
    def locks(self) -> bool:
        return self.lockout_seconds > 0


@dataclass(frozen=True)
class CooldownStatus:
    """Read-only view of an identity's cooldown."""

    on_cooldown: bool
    remaining_seconds: int


NOT_ON_COOLDOWN = CooldownStatus(on_cooldown=False, remaining_seconds=0)


@dataclass(frozen=True)
class CooldownPolicy:
    threshold: int = LOCKOUT_THRESHOLD
    step_seconds: int = LOCKOUT_STEP_SECONDS
    max_seconds: int = LOCKOUT_MAX_SECONDS

    @classmethod
    def from_settings(cls) -> "CooldownPolicy":
        security = get_settings().security
        return cls(
            threshold=security.lockout_threshold,
            step_seconds=security.lockout_step,
            max_seconds=security.lockout_max,
        )

    def duration_for(self, lockout_level: int) -> int:
        """Lockout duration in seconds for a level (0 for level 0)."""
        if lockout_level <= 0:
            return 0
        duration = lockout_level * self.step_seconds
        if self.max_seconds > 0:
            duration = min(duration, self.max_seconds)
        return duration

    def next_failure(self, attempts_so_far: int, lockout_level: int) -> CooldownDecision:
        """Decide what one more failure does to (attempts, level)."""
        attempts = attempts_so_far + 1
        if attempts < self.threshold:
            return CooldownDecision(
                attempts=attempts, lockout_level=lockout_level, lockout_seconds=0
            )

        level = lockout_level + 1
        return CooldownDecision(
            attempts=0, lockout_level=level, lockout_seconds=self.duration_for(level)
        )

    def attempts_remaining(self, attempts: int) -> int:
        return max(self.threshold - attempts, 0)


def cooldown_status(lockout_until_ms: int, now_ms: int) -> CooldownStatus:
    """Cooldown view for a stored lockout timestamp (epoch ms, 0 = none)."""
    if lockout_until_ms <= now_ms:
        return NOT_ON_COOLDOWN
    remaining = math.ceil((lockout_until_ms - now_ms) / 1000)
    return CooldownStatus(on_cooldown=True, remaining_seconds=remaining)
