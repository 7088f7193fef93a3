"""Tuning parameters for the relationship engine.

Every timing constant here encodes a responsiveness trade-off rather than a
game rule, so all of them are configurable. Durations are in seconds.

``EngineSettings.from_dict`` accepts the same keys ``to_dict`` produces;
unknown keys are ignored so older settings files keep loading.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import ConfigError

INTERSECTION_MODES = ("any", "tactical", "coverage")


@dataclass
class CoverOptions:
    intersection_mode: str = "any"
    ignore_undetected: bool = False
    ignore_dead: bool = True
    ignore_allies: bool = False
    allow_prone_blockers: bool = True
    respect_ignore_flag: bool = True
    use_elevation: bool = True
    allow_greater: bool = True
    # Percent of the target covered, for the coverage mode.
    standard_threshold: float = 50.0
    greater_threshold: float = 70.0

    def validate(self) -> None:
        if self.intersection_mode not in INTERSECTION_MODES:
            raise ConfigError(
                f"unknown intersection mode {self.intersection_mode!r}"
            )
        if not 0 <= self.standard_threshold <= self.greater_threshold <= 100:
            raise ConfigError(
                "cover thresholds must satisfy "
                "0 <= standard <= greater <= 100"
            )

    @staticmethod
    def from_dict(d: dict | None) -> CoverOptions:
        if not d:
            return CoverOptions()
        defaults = CoverOptions()
        return CoverOptions(
            intersection_mode=d.get(
                "intersection_mode", defaults.intersection_mode
            ),
            ignore_undetected=d.get(
                "ignore_undetected", defaults.ignore_undetected
            ),
            ignore_dead=d.get("ignore_dead", defaults.ignore_dead),
            ignore_allies=d.get("ignore_allies", defaults.ignore_allies),
            allow_prone_blockers=d.get(
                "allow_prone_blockers", defaults.allow_prone_blockers
            ),
            respect_ignore_flag=d.get(
                "respect_ignore_flag", defaults.respect_ignore_flag
            ),
            use_elevation=d.get("use_elevation", defaults.use_elevation),
            allow_greater=d.get("allow_greater", defaults.allow_greater),
            standard_threshold=d.get(
                "standard_threshold", defaults.standard_threshold
            ),
            greater_threshold=d.get(
                "greater_threshold", defaults.greater_threshold
            ),
        )

    def to_dict(self) -> dict:
        return {
            "intersection_mode": self.intersection_mode,
            "ignore_undetected": self.ignore_undetected,
            "ignore_dead": self.ignore_dead,
            "ignore_allies": self.ignore_allies,
            "allow_prone_blockers": self.allow_prone_blockers,
            "respect_ignore_flag": self.respect_ignore_flag,
            "use_elevation": self.use_elevation,
            "allow_greater": self.allow_greater,
            "standard_threshold": self.standard_threshold,
            "greater_threshold": self.greater_threshold,
        }


@dataclass
class EngineSettings:
    enabled: bool = True
    auto_cover: bool = False
    respect_manual_actions: bool = True
    light_cache_ttl: float = 0.25
    vision_cache_ttl: float = 5.0
    debounce_delay: float = 0.5
    throttle_delay: float = 0.1
    token_create_delay: float = 0.1
    refresh_delay: float = 0.1
    config_close_delay: float = 0.5
    circuit_breaker_limit: int = 3
    circuit_breaker_window: float = 10.0
    max_tokens: int = 15
    # Fraction of a grid square a token must move to trigger a recompute.
    movement_threshold: float = 0.5
    darkness_epsilon: float = 0.01
    max_retry_attempts: int = 3
    retry_base_delay: float = 1.0
    cover: CoverOptions = field(default_factory=CoverOptions)

    def validate(self) -> None:
        for name in (
            "light_cache_ttl",
            "vision_cache_ttl",
            "debounce_delay",
            "throttle_delay",
            "token_create_delay",
            "refresh_delay",
            "config_close_delay",
            "circuit_breaker_window",
            "movement_threshold",
            "darkness_epsilon",
            "retry_base_delay",
        ):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0")
        if self.circuit_breaker_limit < 1:
            raise ConfigError("circuit_breaker_limit must be >= 1")
        if self.max_tokens < 2:
            raise ConfigError("max_tokens must be >= 2")
        if self.max_retry_attempts < 0:
            raise ConfigError("max_retry_attempts must be >= 0")
        self.cover.validate()

    @staticmethod
    def from_dict(d: dict | None) -> EngineSettings:
        if not d:
            return EngineSettings()
        defaults = EngineSettings()
        kwargs = {
            name: d.get(name, getattr(defaults, name))
            for name in defaults.to_dict()
            if name != "cover"
        }
        settings = EngineSettings(
            cover=CoverOptions.from_dict(d.get("cover")), **kwargs
        )
        settings.validate()
        return settings

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "auto_cover": self.auto_cover,
            "respect_manual_actions": self.respect_manual_actions,
            "light_cache_ttl": self.light_cache_ttl,
            "vision_cache_ttl": self.vision_cache_ttl,
            "debounce_delay": self.debounce_delay,
            "throttle_delay": self.throttle_delay,
            "token_create_delay": self.token_create_delay,
            "refresh_delay": self.refresh_delay,
            "config_close_delay": self.config_close_delay,
            "circuit_breaker_limit": self.circuit_breaker_limit,
            "circuit_breaker_window": self.circuit_breaker_window,
            "max_tokens": self.max_tokens,
            "movement_threshold": self.movement_threshold,
            "darkness_epsilon": self.darkness_epsilon,
            "max_retry_attempts": self.max_retry_attempts,
            "retry_base_delay": self.retry_base_delay,
            "cover": self.cover.to_dict(),
        }
