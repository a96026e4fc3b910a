"""
Unit tests for InitiateSpinUseCase

Runs against the in-memory store so the create-if-idle race, cooldown and
record TTL behave like the real store, with time driven by FakeClock.
"""

from unittest.mock import AsyncMock

import anyio
from prometheus_client import REGISTRY
import pytest

from src.service.wheel.app.command.confirm_winner_use_case import ConfirmWinnerUseCase
from src.service.wheel.app.command.initiate_spin_use_case import InitiateSpinUseCase
from src.service.wheel.app.interface.i_spin_state_handler import PublishResult
from src.service.wheel.domain.entity.spin_record_entity import SpinSnapshot
from src.service.wheel.domain.enum.publish_outcome import PublishOutcome
from src.service.wheel.domain.enum.retire_reason import RetireReason
from src.service.wheel.domain.enum.spin_error_kind import SpinErrorKind
from src.service.wheel.domain.spin_errors import (
    AlreadySpinningError,
    CooldownActiveError,
    EmptyRosterSpinError,
    RosterRemovalFailedError,
    SpinError,
    UnauthorizedSpinError,
)


def _initiated(result: str) -> float:
    return REGISTRY.get_sample_value('spin_initiated_total', {'result': result}) or 0.0


@pytest.fixture
def build_use_case(spin_state_handler, roster_provider, history_sink, fixed_selector):
    def _build(
        *,
        cooldown_seconds: float = 30.0,
        record_ttl_seconds: float = 300.0,
        removal_max_attempts: int = 3,
    ):
        return InitiateSpinUseCase(
            spin_state_handler=spin_state_handler,
            roster_provider=roster_provider,
            history_sink=history_sink,
            winner_selector=fixed_selector,
            cooldown_seconds=cooldown_seconds,
            record_ttl_seconds=record_ttl_seconds,
            removal_max_attempts=removal_max_attempts,
            removal_retry_delay=0,
        )

    return _build


class TestInitiateSpin:
    @pytest.mark.asyncio
    async def test_publishes_record_with_store_time(
        self, build_use_case, seed_roster, session_id, spin_state_handler, clock
    ):
        participants = await seed_roster(session_id)
        use_case = build_use_case()

        result = await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)

        assert result.winner_id == participants[2].id
        assert result.winner_verification_code == participants[2].verification_code
        assert result.winner_display_name == 'Cy'
        assert result.target_angle == 1575
        assert result.duration_seconds == 4.0

        snapshot = await spin_state_handler.get_current(session_id=session_id)
        assert snapshot.record.spin_id == result.spin_id
        assert snapshot.record.is_active is True
        assert snapshot.record.published_at == clock.now
        assert snapshot.record.participant_count_at_spin == 4

    @pytest.mark.asyncio
    async def test_non_privileged_caller_is_rejected_before_any_read(self, fixed_selector):
        state = AsyncMock()
        roster = AsyncMock()
        use_case = InitiateSpinUseCase(
            spin_state_handler=state,
            roster_provider=roster,
            history_sink=AsyncMock(),
            winner_selector=fixed_selector,
        )

        with pytest.raises(UnauthorizedSpinError) as exc_info:
            await use_case.initiate_spin(session_id='s-1', caller_is_privileged=False)

        assert exc_info.value.kind is SpinErrorKind.UNAUTHORIZED
        assert exc_info.value.status_code == 403
        state.get_current.assert_not_called()
        roster.fetch_roster.assert_not_called()

    @pytest.mark.asyncio
    async def test_active_spin_blocks_second_initiate(
        self, build_use_case, seed_roster, session_id
    ):
        await seed_roster(session_id)
        use_case = build_use_case(cooldown_seconds=0)
        await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)

        with pytest.raises(AlreadySpinningError):
            await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)

    @pytest.mark.asyncio
    async def test_concurrent_initiates_publish_exactly_one_record(
        self, build_use_case, seed_roster, session_id, spin_feed
    ):
        await seed_roster(session_id)
        use_case = build_use_case(cooldown_seconds=0)
        outcomes: list[object] = []

        async def attempt() -> None:
            try:
                outcomes.append(
                    await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)
                )
            except SpinError as e:
                outcomes.append(e)

        with anyio.fail_after(2):
            async with anyio.create_task_group() as tg:
                for _ in range(5):
                    tg.start_soon(attempt)

        successes = [o for o in outcomes if not isinstance(o, SpinError)]
        failures = [o for o in outcomes if isinstance(o, SpinError)]
        assert len(successes) == 1
        assert len(failures) == 4
        assert all(isinstance(f, AlreadySpinningError) for f in failures)
        assert spin_feed.latest_snapshot(session_id=session_id).spin_id == successes[0].spin_id

    @pytest.mark.asyncio
    async def test_empty_roster(self, build_use_case, session_id, spin_state_handler):
        use_case = build_use_case()

        with pytest.raises(EmptyRosterSpinError):
            await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)

        snapshot = await spin_state_handler.get_current(session_id=session_id)
        assert snapshot.record is None

    @pytest.mark.asyncio
    async def test_cooldown_measured_from_previous_publish(
        self, build_use_case, seed_roster, session_id, spin_state_handler, clock
    ):
        await seed_roster(session_id)
        use_case = build_use_case(cooldown_seconds=30)
        first = await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)
        await spin_state_handler.retire(
            session_id=session_id, spin_id=first.spin_id, reason=RetireReason.CONFIRMED
        )

        clock.advance(10)
        with pytest.raises(CooldownActiveError) as exc_info:
            await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)
        assert exc_info.value.retry_after_seconds == pytest.approx(20, abs=0.01)
        assert exc_info.value.status_code == 429

        clock.advance(21)
        second = await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)
        assert second.spin_id != first.spin_id

    @pytest.mark.asyncio
    async def test_abandoned_active_record_expires_after_ttl(
        self, build_use_case, seed_roster, session_id, clock
    ):
        await seed_roster(session_id)
        use_case = build_use_case(cooldown_seconds=0, record_ttl_seconds=300)
        await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)

        clock.advance(100)
        with pytest.raises(AlreadySpinningError):
            await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)

        clock.advance(201)
        result = await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)
        assert result.spin_id

    @pytest.mark.asyncio
    async def test_store_side_rejection_is_mapped(
        self, fixed_selector, seed_roster, session_id, roster_provider
    ):
        await seed_roster(session_id)
        state = AsyncMock()
        state.get_current.return_value = SpinSnapshot(record=None, server_time=1.0)
        state.publish_if_idle.return_value = PublishResult(
            outcome=PublishOutcome.COOLDOWN_ACTIVE, retry_after_seconds=12.3456
        )
        use_case = InitiateSpinUseCase(
            spin_state_handler=state,
            roster_provider=roster_provider,
            history_sink=AsyncMock(),
            winner_selector=fixed_selector,
        )

        with pytest.raises(CooldownActiveError) as exc_info:
            await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)

        assert exc_info.value.retry_after_seconds == 12.346
        draft = state.publish_if_idle.call_args.kwargs['draft']
        assert draft.published_at == 0.0
        assert draft.winner.display_name == 'Cy'

    @pytest.mark.asyncio
    async def test_outcomes_are_counted(self, build_use_case, seed_roster, session_id):
        await seed_roster(session_id)
        use_case = build_use_case(cooldown_seconds=0)
        success_before = _initiated('success')
        already_before = _initiated(str(SpinErrorKind.ALREADY_SPINNING))

        await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)
        with pytest.raises(AlreadySpinningError):
            await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)

        assert _initiated('success') == success_before + 1
        assert _initiated(str(SpinErrorKind.ALREADY_SPINNING)) == already_before + 1


@pytest.fixture
def confirm_with_roster_outage(spin_state_handler, history_sink, roster_provider):
    """Confirm that records the draw but can never reach the roster"""
    broken_roster = AsyncMock(wraps=roster_provider)
    broken_roster.remove_participant.side_effect = TimeoutError('roster store down')
    use_case = ConfirmWinnerUseCase(
        spin_state_handler=spin_state_handler,
        history_sink=history_sink,
        roster_provider=broken_roster,
        removal_max_attempts=2,
        removal_retry_delay=0,
    )

    async def _confirm(session_id: str, spin_id: str) -> None:
        with pytest.raises(RosterRemovalFailedError):
            await use_case.confirm_winner(
                session_id=session_id, spin_id=spin_id, caller_is_privileged=True
            )

    return _confirm


class TestExpiredSpinSettlement:
    @pytest.mark.asyncio
    async def test_recorded_winner_is_removed_before_expired_record_is_replaced(
        self,
        build_use_case,
        confirm_with_roster_outage,
        seed_roster,
        session_id,
        spin_state_handler,
        history_sink,
        roster_provider,
        clock,
    ):
        participants = await seed_roster(session_id)
        use_case = build_use_case(cooldown_seconds=0, record_ttl_seconds=300)
        first = await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)
        await confirm_with_roster_outage(session_id, first.spin_id)

        # Admin walks away; the record expires while still active
        clock.advance(301)
        second = await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)

        roster_ids = [p.id for p in await roster_provider.fetch_roster(session_id=session_id)]
        assert first.winner_id == participants[2].id
        assert first.winner_id not in roster_ids
        assert second.winner_id != first.winner_id
        assert second.winner_id == participants[3].id

        history = await history_sink.list_history(session_id=session_id)
        assert [h.spin_id for h in history] == [first.spin_id]

        snapshot = await spin_state_handler.get_current(session_id=session_id)
        assert snapshot.record.spin_id == second.spin_id
        assert snapshot.record.participant_count_at_spin == 3

    @pytest.mark.asyncio
    async def test_settlement_retires_expired_record_as_confirmed(
        self,
        build_use_case,
        confirm_with_roster_outage,
        seed_roster,
        session_id,
        spin_feed,
        clock,
    ):
        await seed_roster(session_id)
        use_case = build_use_case(cooldown_seconds=0, record_ttl_seconds=300)
        first = await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)
        await confirm_with_roster_outage(session_id, first.spin_id)
        clock.advance(301)

        seen = []
        async with spin_feed.subscribe(session_id=session_id) as subscription:
            with anyio.fail_after(1):
                replay = (await anext(subscription)).record
                await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)
                async for snapshot in subscription:
                    seen.append(snapshot.record)
                    if len(seen) == 2:
                        break

        retired, published = seen
        assert replay.spin_id == first.spin_id and replay.is_active is True
        assert retired.spin_id == first.spin_id
        assert retired.is_active is False
        assert retired.retire_reason is RetireReason.CONFIRMED
        assert published.spin_id != first.spin_id and published.is_active is True

    @pytest.mark.asyncio
    async def test_roster_still_down_blocks_the_new_spin(
        self,
        build_use_case,
        confirm_with_roster_outage,
        seed_roster,
        session_id,
        spin_state_handler,
        roster_provider,
        clock,
    ):
        await seed_roster(session_id)
        first = await build_use_case(cooldown_seconds=0).initiate_spin(
            session_id=session_id, caller_is_privileged=True
        )
        await confirm_with_roster_outage(session_id, first.spin_id)
        clock.advance(301)

        broken_roster = AsyncMock(wraps=roster_provider)
        broken_roster.remove_participant.side_effect = TimeoutError('roster store down')
        use_case = build_use_case(cooldown_seconds=0)
        use_case.roster_provider = broken_roster

        with pytest.raises(RosterRemovalFailedError):
            await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)

        snapshot = await spin_state_handler.get_current(session_id=session_id)
        assert snapshot.record.spin_id == first.spin_id

    @pytest.mark.asyncio
    async def test_abandoned_reveal_without_history_is_simply_replaced(
        self, build_use_case, seed_roster, session_id, roster_provider, clock
    ):
        await seed_roster(session_id)
        use_case = build_use_case(cooldown_seconds=0)
        first = await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)
        clock.advance(301)

        second = await use_case.initiate_spin(session_id=session_id, caller_is_privileged=True)

        # Nothing was recorded, so the first winner stays eligible
        assert second.winner_id == first.winner_id
        assert len(await roster_provider.fetch_roster(session_id=session_id)) == 4
