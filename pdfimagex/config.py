"""Configuration objects and named presets for pdfimagex."""

from __future__ import annotations

import dataclasses
import os
from typing import Any, Literal, Mapping

from .types import CombinedPolicy, Orientation

QualityPresetName = Literal["high", "medium", "low"]

QUALITY_PRESETS: dict[QualityPresetName, int] = {
    "high": 95,
    "medium": 80,
    "low": 65,
}

# Page sizes in PDF points, portrait.
PAGE_SIZES: dict[str, tuple[float, float]] = {
    "a3": (841.89, 1190.55),
    "a4": (595.28, 841.89),
    "a5": (419.53, 595.28),
    "letter": (612.0, 792.0),
    "legal": (612.0, 1008.0),
}

DEFAULT_SCALE = 2.0
DEFAULT_QUALITY = 92


def default_workers() -> int:
    return max(1, min(4, os.cpu_count() or 1))


def resolve_page_size(value: str | tuple[float, float] | None) -> tuple[float, float] | None:
    """Return ``(width, height)`` points for a named or explicit page size."""

    if value is None:
        return None
    if isinstance(value, str):
        try:
            return PAGE_SIZES[value.strip().lower()]
        except KeyError as exc:
            known = ", ".join(sorted(PAGE_SIZES))
            raise ValueError(f"Unknown page size {value!r}; expected one of: {known}") from exc
    width, height = (float(v) for v in value)
    if width <= 0 or height <= 0:
        raise ValueError("Page size must be positive")
    return width, height


def resolve_quality(value: int | str | None, default: int = DEFAULT_QUALITY) -> int:
    """Accept a 0-100 integer or a preset name."""

    if value is None:
        return default
    if isinstance(value, str) and not value.strip().isdigit():
        try:
            return QUALITY_PRESETS[value.strip().lower()]  # type: ignore[index]
        except KeyError as exc:
            raise ValueError(f"Unknown quality preset: {value}") from exc
    quality = int(value)
    if not 0 <= quality <= 100:
        raise ValueError(f"quality must be between 0 and 100, got {quality}")
    return quality


@dataclasses.dataclass(frozen=True, slots=True)
class AssemblyOptions:
    """
    Controls how a page sequence becomes an output document.

    Attributes:
        orientation: ``portrait`` forces height >= width, ``landscape`` forces
            width >= height, ``auto`` keeps the image's native aspect
        quality: JPEG quality 0-100 used when encoding each page
        max_dimension: Longest allowed image side in pixels, ``None`` to keep
        best_effort: Skip pages that fail to encode instead of failing the job
        page_size: ``None`` to use each image's native size, a name from
            :data:`PAGE_SIZES` or an explicit ``(width, height)`` in points
        margin: Blank border in points kept around the image
        title: Optional ``/Title`` metadata for the output document
        workers: Per-page encoding threads, ``None`` for the default
    """

    orientation: Orientation = Orientation.AUTO
    quality: int = DEFAULT_QUALITY
    max_dimension: int | None = None
    best_effort: bool = False
    page_size: str | tuple[float, float] | None = None
    margin: float = 0.0
    title: str | None = None
    workers: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "orientation", Orientation(self.orientation))
        object.__setattr__(self, "quality", resolve_quality(self.quality))
        if self.max_dimension is not None and self.max_dimension <= 0:
            raise ValueError("max_dimension must be a positive number of pixels")
        if self.margin < 0:
            raise ValueError("margin must not be negative")
        if self.workers is not None and self.workers < 1:
            raise ValueError("workers must be at least 1")
        resolve_page_size(self.page_size)

    @property
    def page_box(self) -> tuple[float, float] | None:
        return resolve_page_size(self.page_size)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any] | None) -> "AssemblyOptions":
        if not config:
            return cls()
        aliases = {"maxDimension": "max_dimension", "bestEffort": "best_effort", "pageSize": "page_size"}
        names = {f.name for f in dataclasses.fields(cls)}
        values: dict[str, Any] = {}
        for key, value in config.items():
            key = aliases.get(key, key)
            if key in names and value is not None:
                values[key] = value
        return cls(**values)


@dataclasses.dataclass(frozen=True, slots=True)
class PipelineSettings:
    """Defaults applied by the orchestrator when a call does not override them."""

    scale: float = DEFAULT_SCALE
    workers: int = dataclasses.field(default_factory=default_workers)
    combined_policy: CombinedPolicy = CombinedPolicy.FALLBACK
    max_form_depth: int = 8

    def __post_init__(self) -> None:
        if self.scale <= 0:
            raise ValueError("scale must be greater than zero")
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        object.__setattr__(self, "combined_policy", CombinedPolicy(self.combined_policy))

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any] | None) -> "PipelineSettings":
        if not config:
            return cls()
        names = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in config.items() if k in names and v is not None})

    def with_updates(self, **updates: Any) -> "PipelineSettings":
        return dataclasses.replace(self, **{k: v for k, v in updates.items() if v is not None})


__all__ = [
    "QUALITY_PRESETS",
    "PAGE_SIZES",
    "DEFAULT_SCALE",
    "DEFAULT_QUALITY",
    "default_workers",
    "resolve_page_size",
    "resolve_quality",
    "AssemblyOptions",
    "PipelineSettings",
]
