"""GameSession: observable in-memory state, single-flight spins, persistence."""
import asyncio

import pytest

from conftest import ScriptedRNG
from dogshuffle.errors import ErrorCode, GameError
from dogshuffle.logic.engine import GameEngine
from dogshuffle.logic.models import GameState, RulesConfig, SpinResult
from dogshuffle.session import GameSession
from dogshuffle.state_store import StateStore


PLAYER_ID = "test-player-session"

WIN_DRAW = 0.1
LOSS_DRAW = 0.9


def make_session(store: StateStore, draws=(WIN_DRAW,), spin_delay: float = 0.0) -> GameSession:
    engine = GameEngine(rng=ScriptedRNG(list(draws)), rules=RulesConfig())
    return GameSession(PLAYER_ID, store, engine=engine, spin_delay=spin_delay)


class TestObservableState:
    """get / set / subscribe."""

    def test_starts_with_defaults(self, store_with_mock: StateStore):
        assert make_session(store_with_mock).get() == GameState()

    def test_subscribers_see_every_set(self, store_with_mock: StateStore):
        session = make_session(store_with_mock)
        seen: list[GameState] = []
        session.subscribe(seen.append)

        session.set(GameState(balance=1))
        session.set(GameState(balance=2))

        assert [s.balance for s in seen] == [1, 2]

    def test_unsubscribe_stops_notifications(self, store_with_mock: StateStore):
        session = make_session(store_with_mock)
        seen: list[GameState] = []
        unsubscribe = session.subscribe(seen.append)

        session.set(GameState(balance=1))
        unsubscribe()
        unsubscribe()
        session.set(GameState(balance=2))

        assert len(seen) == 1

    def test_failing_listener_does_not_block_others(self, store_with_mock: StateStore):
        session = make_session(store_with_mock)
        seen: list[GameState] = []

        def broken(state: GameState) -> None:
            raise RuntimeError("render failed")

        session.subscribe(broken)
        session.subscribe(seen.append)
        session.set(GameState(balance=3))

        assert session.get().balance == 3
        assert len(seen) == 1


class TestLoad:
    """Loading re-clamps the standing wager into what the balance allows."""

    @pytest.mark.asyncio
    async def test_oversized_wager_clamped_to_balance(self, store_with_mock: StateStore):
        await store_with_mock.save(PLAYER_ID, GameState(balance=1000, wager=5000, wins=2, losses=1))
        session = make_session(store_with_mock)

        state = await session.load()

        assert state == GameState(balance=1000, wager=1000, wins=2, losses=1)
        assert session.state == state

    @pytest.mark.asyncio
    async def test_wager_over_balance_clamped(self, store_with_mock: StateStore):
        await store_with_mock.save(PLAYER_ID, GameState(balance=300, wager=800))
        session = make_session(store_with_mock)

        assert (await session.load()).wager == 300

    @pytest.mark.asyncio
    async def test_zero_wager_record_loads_defaults(self, store_with_mock: StateStore, mock_redis):
        mock_redis._store[f"state:player:{PLAYER_ID}"] = (
            '{"balance": 1000, "wager": 0, "wins": 0, "losses": 0}'
        )
        session = make_session(store_with_mock, draws=[LOSS_DRAW])

        assert await session.load() == GameState()
        resolution = await session.spin()
        assert resolution.wager == 50


class TestSpin:
    """Spin resolution through the session."""

    @pytest.mark.asyncio
    async def test_win_persists_state(self, store_with_mock: StateStore):
        session = make_session(store_with_mock, draws=[WIN_DRAW])
        await session.load()

        resolution = await session.spin()

        assert resolution.outcome.result == SpinResult.WIN
        assert session.state == GameState(balance=1000, wager=50, wins=1, losses=0)
        assert await store_with_mock.load(PLAYER_ID) == session.state

    @pytest.mark.asyncio
    async def test_loss_persists_state(self, store_with_mock: StateStore):
        session = make_session(store_with_mock, draws=[LOSS_DRAW])
        await session.load()

        await session.spin(50)

        assert session.state.balance == 900
        assert session.state.losses == 1
        assert (await store_with_mock.load(PLAYER_ID)).balance == 900

    @pytest.mark.asyncio
    async def test_uses_standing_wager_by_default(self, store_with_mock: StateStore):
        await store_with_mock.save(PLAYER_ID, GameState(balance=1000, wager=200))
        session = make_session(store_with_mock, draws=[LOSS_DRAW])
        await session.load()

        resolution = await session.spin()

        assert resolution.wager == 200
        assert session.state.balance == 600

    @pytest.mark.asyncio
    async def test_unaffordable_spin_leaves_everything_untouched(
        self, store_with_mock: StateStore, mock_redis
    ):
        await store_with_mock.save(PLAYER_ID, GameState(balance=100, wager=50))
        stored_before = dict(mock_redis._store)
        session = make_session(store_with_mock)
        await session.load()
        notified: list[GameState] = []
        session.subscribe(notified.append)

        with pytest.raises(GameError) as exc_info:
            await session.spin(150)

        assert exc_info.value.code == ErrorCode.INSUFFICIENT_FUNDS
        assert session.state == GameState(balance=100, wager=50)
        assert mock_redis._store == stored_before
        assert notified == []
        assert session.spinning is False

    @pytest.mark.asyncio
    async def test_second_spin_while_pending_is_rejected(self, store_with_mock: StateStore):
        session = make_session(store_with_mock, spin_delay=0.05)
        await session.load()

        first = asyncio.create_task(session.spin())
        await asyncio.sleep(0)
        assert session.spinning is True

        with pytest.raises(GameError) as exc_info:
            await session.spin()
        assert exc_info.value.code == ErrorCode.ROUND_IN_PROGRESS

        await first
        assert session.state.games_played == 1
        assert session.spinning is False

    @pytest.mark.asyncio
    async def test_cancel_during_delay_applies_nothing(
        self, store_with_mock: StateStore, mock_redis
    ):
        session = make_session(store_with_mock, spin_delay=10.0)
        await session.load()

        task = asyncio.create_task(session.spin())
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert session.state == GameState()
        assert mock_redis._store == {}
        assert session.spinning is False

    @pytest.mark.asyncio
    async def test_subscriber_notified_once_per_spin(self, store_with_mock: StateStore):
        session = make_session(store_with_mock)
        await session.load()
        seen: list[GameState] = []
        session.subscribe(seen.append)

        await session.spin()

        assert len(seen) == 1
        assert seen[0].wins == 1

    @pytest.mark.asyncio
    async def test_save_failure_keeps_in_memory_result(self, failing_store: StateStore):
        session = make_session(failing_store, draws=[LOSS_DRAW])
        await session.load()

        await session.spin()

        assert session.state.balance == 900
        assert session.state.losses == 1


class TestWagerAndReset:
    @pytest.mark.asyncio
    async def test_update_wager_persists(self, store_with_mock: StateStore):
        session = make_session(store_with_mock)
        await session.load()

        state = await session.update_wager(1)

        assert state.wager == 100
        assert (await store_with_mock.load(PLAYER_ID)).wager == 100

    @pytest.mark.asyncio
    async def test_reset_returns_defaults_and_clears_store(self, store_with_mock: StateStore):
        await store_with_mock.save(PLAYER_ID, GameState(balance=3, wins=9, losses=40))
        session = make_session(store_with_mock)
        await session.load()

        state = await session.reset()

        assert state == GameState()
        assert session.state == GameState()
        assert await store_with_mock.load(PLAYER_ID) == GameState()
