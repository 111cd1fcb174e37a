"""Ordered difficulty levels for assessment questions."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_LEVELS = ("easy", "medium", "hard")


@dataclass(frozen=True)
class DifficultyScale:
    """
    Ordered difficulty levels, easiest first.

    Example:
        >>> scale = DifficultyScale()
        >>> scale.step_up("medium")
        'hard'
        >>> scale.step_up("hard")
        'hard'
    """

    levels: tuple[str, ...] = DEFAULT_LEVELS
    default_level: str | None = None

    def __post_init__(self) -> None:
        if len(self.levels) < 2:
            raise ValueError("a difficulty scale needs at least two levels")
        if len(set(self.levels)) != len(self.levels):
            raise ValueError(f"duplicate difficulty levels: {self.levels}")
        if self.default_level is not None and self.default_level not in self.levels:
            raise ValueError(f"unknown default level: {self.default_level}")

    @property
    def default(self) -> str:
        """Configured default, else the middle level."""
        return self.default_level or self.levels[(len(self.levels) - 1) // 2]

    @property
    def minimum(self) -> str:
        return self.levels[0]

    @property
    def maximum(self) -> str:
        return self.levels[-1]

    def __contains__(self, level: object) -> bool:
        return level in self.levels

    def __len__(self) -> int:
        return len(self.levels)

    def index(self, level: str) -> int:
        try:
            return self.levels.index(level)
        except ValueError:
            raise ValueError(f"unknown difficulty level: {level!r}") from None

    def step_up(self, level: str) -> str:
        return self.levels[min(self.index(level) + 1, len(self.levels) - 1)]

    def step_down(self, level: str) -> str:
        return self.levels[max(self.index(level) - 1, 0)]

    def is_max(self, level: str) -> bool:
        return self.index(level) == len(self.levels) - 1

    def is_min(self, level: str) -> bool:
        return self.index(level) == 0
