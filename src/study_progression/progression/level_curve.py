"""XP-to-level threshold table."""

from bisect import bisect_right


class LevelCurve:
    """Strictly increasing XP thresholds for levels 1..max_level.

    Level 1 starts at 0 XP. Reaching level 2 takes `base_increment` XP; the
    next step is `first_growth` larger, and every step after that grows by
    `growth`. With the defaults the per-level cost runs 500, 800, 1200,
    1600, ... and levels begin at 0, 500, 1300, 2500, 4100, ...

    Args:
        max_level: Highest reachable level.
        base_increment: XP from level 1 to level 2.
        first_growth: Extra XP added to the second step.
        growth: Extra XP added to every later step.
    """

    def __init__(
        self,
        max_level: int = 50,
        base_increment: int = 500,
        first_growth: int = 300,
        growth: int = 400,
    ):
        if max_level < 1:
            raise ValueError(f"max_level must be >= 1, got {max_level}")
        if base_increment <= 0 or first_growth < 0 or growth < 0:
            raise ValueError("level increments must be positive and non-shrinking")
        self.max_level = max_level

        # One entry per level; the last one is only used to extrapolate the
        # window of the max level.
        self._increments: list[int] = [base_increment]
        for step in range(1, max_level):
            bump = first_growth if step == 1 else growth
            self._increments.append(self._increments[-1] + bump)

        self._thresholds: list[int] = [0]
        for increment in self._increments[: max_level - 1]:
            self._thresholds.append(self._thresholds[-1] + increment)

    @property
    def thresholds(self) -> tuple[int, ...]:
        """Starting XP for each level, index 0 being level 1."""
        return tuple(self._thresholds)

    def level_for(self, xp: int) -> int:
        """Highest level whose threshold is <= xp."""
        if xp < 0:
            raise ValueError(f"xp must be non-negative, got {xp}")
        return bisect_right(self._thresholds, xp)

    def threshold_for(self, level: int) -> int:
        self._check_level(level)
        return self._thresholds[level - 1]

    def xp_window_for(self, level: int) -> tuple[int, int]:
        """Return (level_start, next_level_target) for `level`.

        The max level has no successor, so its target is one more increment
        past its start. That keeps progress bars from dividing by zero.
        """
        self._check_level(level)
        start = self._thresholds[level - 1]
        if level < self.max_level:
            return start, self._thresholds[level]
        return start, start + self._increments[self.max_level - 1]

    def progress_percent(self, xp: int) -> float:
        """Percentage of the way through the current level, 0-100."""
        start, target = self.xp_window_for(self.level_for(xp))
        return min(100.0, (xp - start) / (target - start) * 100)

    def _check_level(self, level: int) -> None:
        if not 1 <= level <= self.max_level:
            raise ValueError(f"level must be within 1..{self.max_level}, got {level}")
