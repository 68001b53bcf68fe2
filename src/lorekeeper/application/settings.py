from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping


ACTIVE_POLICY_REJECT = "reject"
ACTIVE_POLICY_FORCE_COMPLETE = "force_complete"
_ACTIVE_POLICIES = (ACTIVE_POLICY_REJECT, ACTIVE_POLICY_FORCE_COMPLETE)


def _is_truthy(value: str | None, *, default: str) -> bool:
    normalized = str(value if value is not None else default).strip().lower()
    return normalized in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class EngineSettings:
    player_id: str = "local"
    typing_interval_ms: int = 30
    autoplay: bool = True
    autoplay_base_ms: int = 3000
    playback_speed: float = 1.0
    notification_ttl_ms: int = 5000
    notification_capacity: int = 10
    active_policy: str = ACTIVE_POLICY_REJECT
    rng_seed: int | None = None

    def __post_init__(self) -> None:
        if self.typing_interval_ms < 0:
            raise ValueError("typing_interval_ms cannot be negative")
        if self.playback_speed <= 0:
            raise ValueError("playback_speed must be positive")
        if self.notification_capacity < 1:
            raise ValueError("notification_capacity must be at least 1")
        if self.active_policy not in _ACTIVE_POLICIES:
            raise ValueError(f"Unsupported active story policy: {self.active_policy}")

    @property
    def autoplay_delay_ms(self) -> float:
        return self.autoplay_base_ms / self.playback_speed

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineSettings":
        env = os.environ if environ is None else environ
        seed_raw = str(env.get("LOREKEEPER_RNG_SEED", "")).strip()
        return cls(
            player_id=str(env.get("LOREKEEPER_PLAYER_ID", "local")).strip() or "local",
            typing_interval_ms=int(env.get("LOREKEEPER_TYPING_INTERVAL_MS", "30")),
            autoplay=_is_truthy(env.get("LOREKEEPER_AUTOPLAY"), default="1"),
            autoplay_base_ms=int(env.get("LOREKEEPER_AUTOPLAY_BASE_MS", "3000")),
            playback_speed=float(env.get("LOREKEEPER_PLAYBACK_SPEED", "1")),
            notification_ttl_ms=int(env.get("LOREKEEPER_NOTIFICATION_TTL_MS", "5000")),
            notification_capacity=int(env.get("LOREKEEPER_NOTIFICATION_CAPACITY", "10")),
            active_policy=str(env.get("LOREKEEPER_ACTIVE_POLICY", ACTIVE_POLICY_REJECT)).strip().lower(),
            rng_seed=int(seed_raw) if seed_raw else None,
        )
