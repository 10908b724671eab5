"""
Tuning engine.

Steps the displayed frequency toward the next or previous tunable station,
wrapping at band edges, and commits the target when the dial arrives. One
TuningJob is authoritative at a time; starting a new tune cancels the old
job and its ticker before the new ticker starts.
"""

import asyncio
import inspect
from typing import Awaitable, Callable, Optional, Sequence, Union

from loguru import logger

from .models import (
    BAND_PLANS,
    Band,
    BandPlan,
    ChannelPreset,
    StationDescriptor,
    TunableEntry,
    TuningAnimationState,
)

DEFAULT_INTERVAL_SECONDS = 0.1

CommitCallback = Callable[[StationDescriptor], Union[Awaitable[None], None]]
DisplayCallback = Callable[[Optional[float]], None]


def band_entries(entries: Sequence[TunableEntry], band: Band) -> list[TunableEntry]:
    return sorted((e for e in entries if e.band is band), key=lambda e: e.frequency)


def find_tune_target(
    entries: Sequence[TunableEntry],
    band: Band,
    baseline: Optional[float],
    direction: int,
) -> Optional[TunableEntry]:
    """Nearest entry beyond a half-step guard in the given direction.

    Wraps to the first entry when stepping up past the top of the band and
    to the last entry when stepping down past the bottom. With no baseline
    the first (up) or last (down) entry is chosen.
    """
    candidates = band_entries(entries, band)
    if not candidates:
        return None

    if baseline is None:
        return candidates[0] if direction > 0 else candidates[-1]

    guard = BAND_PLANS[band].step * 0.5
    if direction > 0:
        return next(
            (e for e in candidates if e.frequency > baseline + guard), candidates[0]
        )
    return next(
        (e for e in reversed(candidates) if e.frequency < baseline - guard),
        candidates[-1],
    )


def nearest_entry(
    entries: Sequence[TunableEntry], band: Band, frequency: float
) -> Optional[TunableEntry]:
    """Entry of band closest to frequency; ties go to the lower frequency."""
    best: Optional[TunableEntry] = None
    for entry in band_entries(entries, band):
        if best is None or abs(entry.frequency - frequency) < abs(best.frequency - frequency):
            best = entry
    return best


def preset_target(
    preset: Optional[ChannelPreset],
    entries: Sequence[TunableEntry],
    band: Band,
) -> Optional[StationDescriptor]:
    """Station for a preset slot, or the entry nearest the band's default frequency."""
    if preset is not None:
        return preset.to_descriptor()
    fallback = nearest_entry(entries, band, BAND_PLANS[band].default_freq)
    return fallback.to_descriptor() if fallback else None


def travel_distance(plan: BandPlan, start: float, target: float, direction: int) -> float:
    """Dial distance from start to target moving only in direction, across band edges."""
    return ((target - start) * direction) % plan.span


class TuningJob:
    """Explicit state machine for one dial animation, advanced by step()."""

    def __init__(
        self,
        plan: BandPlan,
        start_freq: float,
        target: StationDescriptor,
        direction: int,
    ):
        if target.frequency is None:
            raise ValueError("Tuning target must have a frequency")
        self.plan = plan
        self.direction = 1 if direction > 0 else -1
        self._position = min(plan.max_freq, max(plan.min_freq, start_freq))
        self.remaining = travel_distance(
            plan, self._position, target.frequency, self.direction
        )
        self.ticks = 0
        self.state = TuningAnimationState(
            active=True,
            current_display_freq=plan.round_freq(self._position),
            target_freq=target.frequency,
            target_station=target,
            direction=self.direction,
        )

    @property
    def active(self) -> bool:
        return self.state.active

    @property
    def display_freq(self) -> float:
        return self.state.current_display_freq

    def step(self) -> bool:
        """Advance one tick. Returns True once the dial has arrived."""
        if not self.state.active:
            return True

        if self.remaining < self.plan.step * 0.5:
            self.state.active = False
            return True

        move = min(self.plan.step, self.remaining)
        self._position = self.plan.wrap(self._position + self.direction * move)
        self.remaining -= move
        self.ticks += 1
        self.state.current_display_freq = self.plan.round_freq(self._position)
        return False

    def cancel(self) -> None:
        self.state.active = False


class TuningEngine:
    """Owns the single current TuningJob and its ticker.

    Args:
        commit: Receives the target station when the dial arrives
        on_display: Receives each displayed frequency, and None when cleared
        before_tune: Called synchronously when a tune starts (stream teardown)
        interval: Seconds between ticks
    """

    def __init__(
        self,
        commit: CommitCallback,
        on_display: Optional[DisplayCallback] = None,
        before_tune: Optional[Callable[[], None]] = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
    ):
        self.commit = commit
        self.on_display = on_display
        self.before_tune = before_tune
        self.interval = interval
        self.current_job: Optional[TuningJob] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def display_freq(self) -> Optional[float]:
        if self.current_job is not None and self.current_job.active:
            return self.current_job.display_freq
        return None

    @property
    def animation(self) -> Optional[TuningAnimationState]:
        if self.current_job is not None and self.current_job.active:
            return self.current_job.state
        return None

    def baseline(
        self,
        current: Optional[StationDescriptor],
        entries: Sequence[TunableEntry],
    ) -> Optional[float]:
        """Animated frequency if a tune is running, else the current station's."""
        animated = self.display_freq
        if animated is not None:
            return animated
        if current is None:
            return None
        if current.frequency is not None:
            return current.frequency
        for entry in entries:
            if entry.station_id == current.id and entry.band is current.band:
                return entry.frequency
        candidates = band_entries(entries, current.band)
        return candidates[0].frequency if candidates else None

    def tune(
        self,
        current: Optional[StationDescriptor],
        direction: int,
        entries: Sequence[TunableEntry],
        band: Optional[Band] = None,
    ) -> Optional[TuningJob]:
        """Start animating toward the next station in direction (+1 up, -1 down)."""
        band = current.band if current is not None else (band or Band.FM)
        plan = BAND_PLANS[band]
        baseline = self.baseline(current, entries)
        target = find_tune_target(entries, band, baseline, direction)
        if target is None:
            logger.debug(f"No tunable {band.value} stations")
            return None

        self.cancel()
        if self.before_tune:
            self.before_tune()

        if baseline is None:
            baseline = plan.min_freq if direction > 0 else plan.max_freq

        job = TuningJob(plan, baseline, target.to_descriptor(), direction)
        self.current_job = job
        self._emit(job.display_freq)
        logger.debug(
            f"Tuning {band.value} {baseline} -> {target.frequency} ({target.name})"
        )

        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(job))
        return job

    def cancel(self) -> None:
        """Stop the running animation without committing anything."""
        job = self.current_job
        task = self._task
        self.current_job = None
        self._task = None

        if task is not None and not task.done():
            task.cancel()
        if job is not None and job.active:
            job.cancel()
            self._emit(None)
            logger.debug("Tuning animation cancelled")

    async def wait(self) -> None:
        """Wait for the current animation (and its commit) to finish."""
        task = self._task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _run(self, job: TuningJob) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.current_job is not job:
                return
            if job.step():
                break
            self._emit(job.display_freq)

        # Detach before committing so a commit that cancels tuning can't cancel itself
        self.current_job = None
        self._task = None
        self._emit(None)

        result = self.commit(job.state.target_station)
        if inspect.isawaitable(result):
            await result

    def _emit(self, freq: Optional[float]) -> None:
        if self.on_display:
            self.on_display(freq)
