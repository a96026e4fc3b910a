"""
Client-side spin reconciler.

Turns the snapshot stream of one session into a local wheel view that is
time-aligned with every other observer:

    UNKNOWN → IDLE ⇄ ANIMATING → REVEALING → IDLE

The first snapshot is the baseline. A late joiner animates only what is
left of an in-flight spin, and a finished or stale spin is shown at rest.
After the baseline, only a new spin_id that is active and fresh animates.
"""

import inspect
import time
from typing import Any, Awaitable, Callable, Optional

import anyio
from anyio.abc import TaskGroup
import attrs

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.spin_metrics import metrics
from src.service.wheel.app.interface.i_spin_feed import ISpinSubscription
from src.service.wheel.domain.entity.spin_record_entity import (
    MalformedSpinRecordError,
    SpinRecord,
    WinnerRef,
    decode_spin_snapshot,
)
from src.service.wheel.domain.enum.reconciler_state import ReconcilerState
from src.service.wheel.domain.spin_errors import UnauthorizedSpinError


@attrs.define(frozen=True)
class WheelView:
    state: ReconcilerState
    spin_id: Optional[str] = None
    winner: Optional[WinnerRef] = None
    target_angle: Optional[float] = None
    duration_seconds: Optional[float] = None
    remaining_seconds: float = 0.0
    participant_count: int = 0
    resting: bool = False  # Render at target_angle without animating

    @classmethod
    def for_record(
        cls,
        record: SpinRecord,
        *,
        state: ReconcilerState,
        remaining_seconds: float = 0.0,
        resting: bool = False,
    ) -> 'WheelView':
        return cls(
            state=state,
            spin_id=record.spin_id,
            winner=record.winner,
            target_angle=record.target_angle,
            duration_seconds=record.duration_seconds,
            remaining_seconds=remaining_seconds,
            participant_count=record.participant_count_at_spin,
            resting=resting,
        )


ViewListener = Callable[[WheelView], Any]
ConfirmCallback = Callable[[str], Awaitable[Any]]


class SpinReconciler:
    def __init__(
        self,
        *,
        task_group: TaskGroup,
        is_privileged: bool,
        on_view_change: Optional[ViewListener] = None,
        confirm: Optional[ConfirmCallback] = None,
        clock: Callable[[], float] = time.time,
        freshness_window_seconds: float = settings.SPIN_FRESHNESS_WINDOW_SECONDS,
        reveal_margin_seconds: float = settings.REVEAL_SAFETY_MARGIN_SECONDS,
        reveal_display_seconds: float = settings.REVEAL_DISPLAY_SECONDS,
    ) -> None:
        self._task_group = task_group
        self.is_privileged = is_privileged
        self._on_view_change = on_view_change
        self._confirm = confirm
        self._clock = clock
        self._freshness_window_seconds = freshness_window_seconds
        self._reveal_margin_seconds = reveal_margin_seconds
        self._reveal_display_seconds = reveal_display_seconds

        self._view = WheelView(state=ReconcilerState.UNKNOWN)
        self._has_baseline = False
        self._last_spin_id: Optional[str] = None
        self._last_active = False
        self._offset = 0.0  # server_time - local clock, refreshed on every snapshot
        self._timer_scope: Optional[anyio.CancelScope] = None
        self._subscription: Optional[ISpinSubscription] = None
        self._closed = False

    @property
    def view(self) -> WheelView:
        return self._view

    @property
    def state(self) -> ReconcilerState:
        return self._view.state

    @property
    def has_pending_timer(self) -> bool:
        return self._timer_scope is not None

    def server_now(self) -> float:
        return self._clock() + self._offset

    async def run(self, subscription: ISpinSubscription) -> None:
        """Consume snapshots until the subscription ends or close() is called"""
        self._subscription = subscription
        if self._closed:
            subscription.cancel()
            return
        async for snapshot in subscription:
            await self.on_snapshot(snapshot)

    async def on_snapshot(self, payload: Any) -> None:
        if self._closed:
            return
        try:
            snapshot = decode_spin_snapshot(payload)
        except MalformedSpinRecordError as e:
            metrics.feed_malformed_snapshots.inc()
            Logger.base.warning(f'⚠️ [RECONCILER] Dropped malformed snapshot: {e}')
            return

        self._offset = snapshot.server_time - self._clock()
        now = snapshot.server_time
        record = snapshot.record

        if not self._has_baseline:
            self._has_baseline = True
            await self._apply_baseline(record, now=now)
            return

        if record is None:
            return

        if record.spin_id == self._last_spin_id:
            # Duplicate delivery; only the retirement transition is accepted
            if self._last_active and not record.is_active:
                self._last_active = False
                await self._apply_retired(record)
            return

        self._remember(record)
        if record.is_active and record.elapsed(now=now) < self._freshness_window_seconds:
            await self._start_animation(record, remaining_seconds=record.duration_seconds)
        else:
            await self._apply_resting(record)

    async def acknowledge(self) -> None:
        """Privileged observer dismisses the reveal, confirming the winner"""
        if not self.is_privileged:
            raise UnauthorizedSpinError('Only the session admin can confirm the winner')
        if self._view.state is not ReconcilerState.REVEALING or self._view.spin_id is None:
            return

        spin_id = self._view.spin_id
        if self._confirm is not None:
            await self._confirm(spin_id)

        # The retired snapshot may already have moved the view on
        if self._view.state is ReconcilerState.REVEALING and self._view.spin_id == spin_id:
            await self._set_view(attrs.evolve(self._view, state=ReconcilerState.IDLE))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._cancel_timer()
        if self._subscription is not None:
            self._subscription.cancel()

    async def _apply_baseline(self, record: Optional[SpinRecord], *, now: float) -> None:
        if record is None:
            await self._set_view(WheelView(state=ReconcilerState.IDLE))
            return

        self._remember(record)
        elapsed = record.elapsed(now=now)
        if record.is_active and elapsed < record.duration_seconds:
            # Late joiner: animate only what is left
            await self._start_animation(
                record, remaining_seconds=record.duration_seconds - max(elapsed, 0.0)
            )
        else:
            await self._apply_resting(record)

    async def _apply_resting(self, record: SpinRecord) -> None:
        self._cancel_timer()
        if record.is_active:
            # Finished but unconfirmed: the winner is shown, the admin can still confirm
            await self._enter_revealing(record)
        else:
            await self._set_view(
                WheelView.for_record(record, state=ReconcilerState.IDLE, resting=True)
            )

    async def _apply_retired(self, record: SpinRecord) -> None:
        self._cancel_timer()
        if self._view.state in (ReconcilerState.ANIMATING, ReconcilerState.REVEALING):
            await self._set_view(
                WheelView.for_record(record, state=ReconcilerState.IDLE, resting=True)
            )

    async def _start_animation(self, record: SpinRecord, *, remaining_seconds: float) -> None:
        self._cancel_timer()
        await self._set_view(
            WheelView.for_record(
                record, state=ReconcilerState.ANIMATING, remaining_seconds=remaining_seconds
            )
        )
        self._schedule(remaining_seconds + self._reveal_margin_seconds, self._reveal)

    async def _reveal(self) -> None:
        view = self._view
        if view.state is not ReconcilerState.ANIMATING:
            return
        await self._set_view(
            attrs.evolve(
                view, state=ReconcilerState.REVEALING, remaining_seconds=0.0, resting=True
            )
        )
        if not self.is_privileged:
            self._schedule(self._reveal_display_seconds, self._auto_idle)

    async def _enter_revealing(self, record: SpinRecord) -> None:
        await self._set_view(
            WheelView.for_record(record, state=ReconcilerState.REVEALING, resting=True)
        )
        if not self.is_privileged:
            self._schedule(self._reveal_display_seconds, self._auto_idle)

    async def _auto_idle(self) -> None:
        if self._view.state is ReconcilerState.REVEALING:
            await self._set_view(attrs.evolve(self._view, state=ReconcilerState.IDLE))

    def _remember(self, record: SpinRecord) -> None:
        self._last_spin_id = record.spin_id
        self._last_active = record.is_active

    def _schedule(self, delay: float, action: Callable[[], Awaitable[None]]) -> None:
        self._cancel_timer()
        scope = anyio.CancelScope()
        self._timer_scope = scope
        self._task_group.start_soon(self._run_timer, scope, delay, action)

    async def _run_timer(
        self, scope: anyio.CancelScope, delay: float, action: Callable[[], Awaitable[None]]
    ) -> None:
        fired = False
        with scope:
            await anyio.sleep(delay)
            fired = True
        # A newer timer may have replaced this one after the sleep finished
        if not fired or self._closed or self._timer_scope is not scope:
            return
        self._timer_scope = None
        await action()

    def _cancel_timer(self) -> None:
        scope, self._timer_scope = self._timer_scope, None
        if scope is not None:
            scope.cancel()

    async def _set_view(self, view: WheelView) -> None:
        if view == self._view:
            return
        self._view = view
        Logger.base.debug(f'🎡 [RECONCILER] {view.state} spin={view.spin_id}')
        if self._on_view_change is None:
            return
        result = self._on_view_change(view)
        if inspect.isawaitable(result):
            await result
