"""Engine configuration.

Groups the tunable policies of the graph store and layout engine into
pydantic models so they can be validated, serialised, and loaded from YAML.

Classes
-------
- DeletePolicy  — what happens when a parent node is deleted
- LayoutConfig  — spacing constants and jitter for the layout engine
- GraphConfig   — history, merge, delete, and context policies

Functions
---------
- load_config   — read a ``GraphConfig`` from a YAML file
"""
from __future__ import annotations

from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

from conversation_loom.context.selector import (
    DEFAULT_LARGE_CONTEXT_WARNING,
    TruncationStrategy,
)


class DeletePolicy(str, Enum):
    """Handling of dependents when a parent node is deleted.

    ``BLOCK`` refuses the delete; ``CASCADE`` prunes the deleted node from
    each dependent's parents and inherited context.
    """

    BLOCK = "block"
    CASCADE = "cascade"


class LayoutConfig(BaseModel):
    """Spacing constants for tree layout and single-node placement.

    Parameters
    ----------
    start_x / start_y:
        Canvas origin of the first root.
    level_spacing_x:
        Horizontal distance between consecutive depths.
    level_spacing_y:
        Vertical distance between siblings at the same depth.
    merge_offset_x:
        Horizontal distance of a merge node past its right-most parent.
    jitter:
        Maximum horizontal seeded offset (± pixels) for an organic look.
        Must stay below ``level_spacing_x / 2``.
    card_width / card_height:
        Card footprint used for layout bounds.
    columns:
        Columns per row in grid arrangements.
    gap_x / gap_y:
        Space between neighbouring cards in grid arrangements.  Card size
        plus gap gives the same pitch as the level spacings by default.
    cascade_offset_x / cascade_offset_y:
        Step between consecutive cards in a cascade.
    """

    start_x: float = 100.0
    start_y: float = 100.0
    level_spacing_x: float = Field(default=560.0, gt=0)
    level_spacing_y: float = Field(default=400.0, gt=0)
    merge_offset_x: float = Field(default=300.0, gt=0)
    jitter: float = Field(default=20.0, ge=0)
    card_width: float = Field(default=280.0, gt=0)
    card_height: float = Field(default=120.0, gt=0)
    columns: int = Field(default=4, ge=1)
    gap_x: float = Field(default=280.0, ge=0)
    gap_y: float = Field(default=280.0, ge=0)
    cascade_offset_x: float = 60.0
    cascade_offset_y: float = 40.0

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_jitter(self) -> "LayoutConfig":
        if self.jitter * 2 >= self.level_spacing_x:
            raise ValueError(
                f"jitter {self.jitter!r} must be less than half of "
                f"level_spacing_x {self.level_spacing_x!r}."
            )
        return self


class GraphConfig(BaseModel):
    """Configuration parameters for ``ConversationGraph``.

    Parameters
    ----------
    history_capacity:
        Maximum number of undoable commands retained.  Default: 50.
    max_merge_sources:
        Largest allowed merge fan-in.  ``None`` disables the limit.
        Default: 5.
    merge_warning_threshold:
        Merges with at least this many sources log a warning.  Default: 3.
    delete_policy:
        Dependent handling on delete.  Default: cascade.
    large_context_warning:
        Selections larger than this many messages warn during validation.
    summary_truncation:
        Strategy used to preview which messages a summary should cover.
    layout:
        Layout engine spacing and jitter.
    layout_seed:
        Seed for the layout jitter.  ``None`` disables jitter in
        single-node placement.
    """

    history_capacity: int = Field(default=50, ge=1)
    max_merge_sources: int | None = Field(default=5, ge=2)
    merge_warning_threshold: int = Field(default=3, ge=2)
    delete_policy: DeletePolicy = DeletePolicy.CASCADE
    large_context_warning: int = Field(default=DEFAULT_LARGE_CONTEXT_WARNING, ge=1)
    summary_truncation: TruncationStrategy = Field(default_factory=TruncationStrategy)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    layout_seed: int | None = None

    model_config = {"frozen": False}


def load_config(path: str | Path) -> GraphConfig:
    """Load a ``GraphConfig`` from a YAML file.

    Missing keys fall back to defaults; an empty file yields the default
    configuration.

    Parameters
    ----------
    path:
        Path to a YAML document.

    Returns
    -------
    GraphConfig

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    pydantic.ValidationError
        If a value is out of range or of the wrong type.
    """
    raw = Path(path).read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {str(path)!r} must contain a mapping.")
    return GraphConfig.model_validate(data)
