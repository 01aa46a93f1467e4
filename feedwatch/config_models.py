"""Pydantic models for the feedwatch configuration file."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _floor(value: float, minimum: float) -> float:
    return minimum if value < minimum else value


class FeedIdent(BaseModel):
    """A feed referenced either by name or by numeric ID, never both."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    id: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def coerce_scalar(cls, value: Any) -> Any:
        # Bare YAML scalars: integers are IDs, strings are names
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return {"id": value}
        if isinstance(value, str):
            return {"name": value}
        return value

    @model_validator(mode="after")
    def check_variant(self):
        if (self.name is None) == (self.id is None):
            raise ValueError("Feed identifier needs exactly one of 'name' or 'id'")
        return self

    def matches(self, feed) -> bool:
        if self.id is not None:
            return feed.id == self.id
        return feed.name == self.name

    def __str__(self) -> str:
        if self.id is not None:
            return f"ID({self.id})"
        return f"Name({self.name})"


class SpikeConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    jump: float = 0.25
    low_listener_increase: float = 0.005
    high_listener_dec: float = 0.02
    high_listener_dec_every: float = 100.0

    @field_validator("jump", "low_listener_increase", "high_listener_dec")
    def clamp_fractions(cls, value: float) -> float:
        return _floor(value, 0.0)

    @field_validator("high_listener_dec_every")
    def clamp_quantum(cls, value: float) -> float:
        return _floor(value, 1.0)


class FeedSetting(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    spike: SpikeConfig


class UnskewedAverageConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    reset_pcnt: float = 0.15
    adjust_pcnt: float = 0.01
    spikes_required: int = 1

    @field_validator("reset_pcnt", "adjust_pcnt")
    def clamp_fractions(cls, value: float) -> float:
        return _floor(value, 0.0)

    @field_validator("spikes_required")
    def clamp_spikes(cls, value: int) -> int:
        return int(_floor(value, 1))


class MiscConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    update_time: float = 360.0
    minimum_listeners: int = 15
    state_feeds_id: Optional[int] = None
    evict_after_cycles: int = 0
    notify_errors: bool = True

    @field_validator("update_time")
    def clamp_update_time(cls, value: float) -> float:
        return _floor(value, 300.0)

    @field_validator("minimum_listeners", "evict_after_cycles")
    def clamp_counts(cls, value: int) -> int:
        return int(_floor(value, 0))


class OutputsConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    use_desktop: bool = True
    use_pushover: bool = False


class Config(BaseModel):
    model_config = ConfigDict(frozen=True)

    spike: SpikeConfig = Field(default_factory=SpikeConfig)
    unskewed_average: UnskewedAverageConfig = Field(default_factory=UnskewedAverageConfig)
    misc: MiscConfig = Field(default_factory=MiscConfig)
    feed_settings: List[FeedSetting] = Field(default_factory=list)
    blacklist: List[FeedIdent] = Field(default_factory=list)
    whitelist: List[FeedIdent] = Field(default_factory=list)
    outputs: OutputsConfig = Field(default_factory=OutputsConfig)

    @model_validator(mode="before")
    @classmethod
    def drop_empty_sections(cls, value: Any) -> Any:
        # `spike:` with nothing under it parses as None; treat it as absent
        if isinstance(value, dict):
            return {key: section for key, section in value.items() if section is not None}
        return value

    def spike_for(self, feed_id: int) -> SpikeConfig:
        """Return the per-feed spike override for `feed_id`, else the global section."""
        for setting in self.feed_settings:
            if setting.id == feed_id:
                return setting.spike
        return self.spike

    def is_denied(self, feed) -> bool:
        return any(ident.matches(feed) for ident in self.blacklist)

    def is_allowed(self, feed) -> bool:
        if not self.whitelist:
            return True
        return any(ident.matches(feed) for ident in self.whitelist)
