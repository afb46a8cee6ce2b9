"""
Tests for the BlackjackEngine class.

This module drives the asynchronous engine end to end with a DummyAdapter and
stacked shoes, checking the emitted events, the rendered snapshots, the turn
timer and session persistence.
"""

import asyncio
import json
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio

from countsharp.adapters import DummyAdapter
from countsharp.blackjack.counting import init_counts
from countsharp.blackjack.stats import GameStats
from countsharp.common.card import parse_card
from countsharp.common.shoe import Shoe
from countsharp.config import GameSettings, GameSpeed
from countsharp.engine import BlackjackEngine
from countsharp.errors import ConfigurationError, InvalidBetError, InvalidTransitionError
from countsharp.events import EngineEventType, EventEmitter
from countsharp.state import RoundStage
from countsharp.storage import MemoryStore, SessionRepository
from countsharp.storage.session import CHIP_POT_KEY, SETTINGS_KEY, STATS_KEY


FILLER = ("2♣", "3♣", "4♣", "2♦", "3♦", "4♦", "2♥", "3♥", "4♥", "2♠", "3♠", "4♠")


def timed_settings(seconds):
    return GameSettings(
        speed=GameSpeed.CUSTOM,
        custom_timer_length=seconds,
        custom_animation_speed=0,
    )


def stack(engine, *labels):
    """Replace the engine's shoe with one dealing ``labels`` first."""
    cards = [parse_card(label) for label in labels + FILLER]
    engine.state = replace(
        engine.state, shoe=Shoe.from_cards(cards), counting=init_counts(1)
    )


async def wait_for_stage(engine, stage, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while engine.state.stage is not stage:
        if loop.time() > deadline:
            raise AssertionError(f"Engine stuck in {engine.state.stage.value}")
        await asyncio.sleep(0.005)


@pytest.fixture
def adapter():
    return DummyAdapter()


@pytest.fixture
def event_bus():
    return EventEmitter()


@pytest_asyncio.fixture
async def engine(adapter, event_bus, instant_settings):
    engine = BlackjackEngine(adapter, settings=instant_settings, event_bus=event_bus)
    await engine.initialize()
    yield engine
    await engine.shutdown()


def test_construction_defaults():
    engine = BlackjackEngine()
    assert isinstance(engine.adapter, DummyAdapter)
    assert engine.event_bus is not None
    assert engine.state.stage is RoundStage.WAITING
    assert engine.state.chip_pot == 1000


@pytest.mark.asyncio
async def test_initialize(engine, adapter):
    assert adapter.initialized
    assert "ENGINE_INIT" in adapter.event_types()
    assert adapter.last_state["stage"] == "waiting"
    assert engine.snapshot()["shoe_size"] == 52


@pytest.mark.asyncio
async def test_shutdown(adapter, event_bus, instant_settings):
    engine = BlackjackEngine(adapter, settings=instant_settings, event_bus=event_bus)
    await engine.initialize()
    await engine.shutdown()
    assert adapter.shut_down
    assert adapter.event_types()[-1] == "ENGINE_SHUTDOWN"


@pytest.mark.asyncio
async def test_place_bet(engine, adapter):
    snapshot = await engine.place_bet(25)
    assert snapshot["stage"] == "betting"
    assert snapshot["current_bet"] == 25
    assert "PLAYER_BET" in adapter.event_types()
    assert adapter.last_state == snapshot


@pytest.mark.asyncio
async def test_invalid_bet_leaves_state_untouched(engine, adapter):
    before = engine.state
    with pytest.raises(InvalidBetError):
        await engine.place_bet(5000)
    assert engine.state is before
    assert adapter.event_types()[-1] == "WARNING"


@pytest.mark.asyncio
async def test_action_in_wrong_stage_is_rejected(engine, adapter):
    before = engine.state
    with pytest.raises(InvalidTransitionError):
        await engine.hit()
    assert engine.state is before
    name, data = adapter.events[-1]
    assert name == "WARNING"
    assert data["action"] == "hit"


@pytest.mark.asyncio
async def test_player_blackjack_round(engine, adapter):
    stack(engine, "10♠", "5♦", "A♥", "9♣")
    await engine.place_bet(20)
    snapshot = await engine.deal()

    assert snapshot["stage"] == "game-over"
    assert snapshot["outcome"] == "player-blackjack"
    assert snapshot["chip_pot"] == 1030
    assert snapshot["message"] == "Blackjack! You win!"

    events = adapter.event_types()
    assert events.count("CARD_DEALT") == 4
    for name in ("ROUND_STARTED", "BLACKJACK", "HAND_RESULT", "BANKROLL_UPDATED", "ROUND_ENDED"):
        assert name in events
    assert events.index("HAND_RESULT") < events.index("ROUND_ENDED")


@pytest.mark.asyncio
async def test_hole_card_is_hidden_until_stand(engine, adapter):
    stack(engine, "2♣", "3♦", "4♥", "K♠", "5♠")
    await engine.place_bet(20)
    snapshot = await engine.deal()

    assert snapshot["stage"] == "player-turn"
    assert snapshot["dealer_hand"]["cards"][1] == {"visible": False}
    assert snapshot["counting"]["running_count"] == 3
    hole_events = [data for name, data in adapter.events if name == "CARD_DEALT" and data["is_hole_card"]]
    assert hole_events == [
        {"card": {"visible": False}, "to_dealer": True, "is_hole_card": True, "shoe_size": 13}
    ]

    snapshot = await engine.stand()
    assert snapshot["stage"] == "game-over"
    assert snapshot["dealer_hand"]["value"] == 18
    assert snapshot["outcome"] == "dealer"
    assert snapshot["counting"]["running_count"] == 3

    revealed = [data for name, data in adapter.events if name == "CARD_REVEALED"]
    assert revealed[0]["card"]["rank"] == "K"


@pytest.mark.asyncio
async def test_hit_then_bust(engine, adapter):
    stack(engine, "10♠", "9♦", "6♣", "7♠", "K♥")
    await engine.place_bet(20)
    await engine.deal()
    snapshot = await engine.hit()

    assert snapshot["stage"] == "game-over"
    assert snapshot["outcome"] == "dealer"
    assert snapshot["chip_pot"] == 980
    assert snapshot["stats"]["busts"] == 1
    events = adapter.event_types()
    assert "HAND_BUSTED" in events
    assert "CARD_REVEALED" not in events
    assert snapshot["dealer_hand"]["cards"][1] == {"visible": False}
    assert snapshot["counting"]["running_count"] == -1
    assert snapshot["counting"]["remaining"]["7"] == 4


@pytest.mark.asyncio
async def test_new_round_after_game_over(engine):
    stack(engine, "10♠", "5♦", "A♥", "9♣")
    await engine.place_bet(20)
    await engine.deal()
    snapshot = await engine.new_round()
    assert snapshot["stage"] == "waiting"
    assert snapshot["player_hand"]["cards"] == []
    assert snapshot["chip_pot"] == 1030


def paced_settings(animation_ms=30):
    return GameSettings(
        speed=GameSpeed.CUSTOM,
        custom_timer_length=0,
        custom_animation_speed=animation_ms,
    )


@pytest.mark.asyncio
async def test_actions_rejected_during_paced_deal(adapter, event_bus):
    engine = BlackjackEngine(adapter, settings=paced_settings(), event_bus=event_bus)
    await engine.initialize()
    stack(engine, "2♣", "3♦", "4♥", "K♠", "5♠")
    await engine.place_bet(10)

    dealing = asyncio.create_task(engine.deal())
    await wait_for_stage(engine, RoundStage.DEALING)
    # Without rejection this hit would wait for the deal and then draw
    with pytest.raises(InvalidTransitionError):
        await engine.hit()
    with pytest.raises(InvalidTransitionError):
        await engine.place_bet(20)

    name, data = adapter.events[-1]
    assert name == "WARNING"
    assert data["action"] == "bet"
    assert "being played out" in data["reason"]

    snapshot = await dealing
    assert snapshot["stage"] == "player-turn"
    assert len(snapshot["player_hand"]["cards"]) == 2
    assert snapshot["current_bet"] == 10
    await engine.shutdown()


@pytest.mark.asyncio
async def test_actions_rejected_during_dealer_turn(adapter, event_bus):
    engine = BlackjackEngine(adapter, settings=paced_settings(), event_bus=event_bus)
    await engine.initialize()
    # Dealer draws 2, 3, 10, 2 to a hard 17 against the player's 18
    stack(engine, "10♠", "2♦", "8♣", "3♥", "10♦")
    await engine.place_bet(10)
    await engine.deal()

    standing = asyncio.create_task(engine.stand())
    await wait_for_stage(engine, RoundStage.DEALER_TURN)
    # A new round would otherwise be queued behind the dealer and succeed
    with pytest.raises(InvalidTransitionError):
        await engine.new_round()
    with pytest.raises(InvalidTransitionError):
        await engine.hit()

    snapshot = await standing
    assert snapshot["stage"] == "game-over"
    assert snapshot["outcome"] == "player"
    assert snapshot["chip_pot"] == 1010
    assert engine.state.stage is RoundStage.GAME_OVER
    await engine.shutdown()


@pytest.mark.asyncio
async def test_stage_changes_are_announced(engine, event_bus):
    listener = MagicMock()
    event_bus.on(EngineEventType.STAGE_CHANGED, listener)
    stack(engine, "10♠", "5♦", "A♥", "9♣")
    await engine.place_bet(20)
    await engine.deal()

    stages = [(c.args[0]["from"], c.args[0]["to"]) for c in listener.call_args_list]
    assert stages == [
        ("waiting", "betting"),
        ("betting", "dealing"),
        ("dealing", "game-over"),
    ]


@pytest.mark.asyncio
async def test_ui_update_carries_snapshot(engine, event_bus):
    listener = MagicMock()
    event_bus.on(EngineEventType.UI_UPDATE_NEEDED, listener)
    snapshot = await engine.place_bet(15)
    assert listener.call_args[0][0]["current_bet"] == 15
    assert listener.call_args[0][0]["stage"] == snapshot["stage"]


@pytest.mark.asyncio
async def test_cards_are_paced_by_animation_speed(adapter, event_bus):
    settings = GameSettings(
        speed=GameSpeed.CUSTOM, custom_timer_length=0, custom_animation_speed=250
    )
    engine = BlackjackEngine(adapter, settings=settings, event_bus=event_bus)
    await engine.initialize()
    stack(engine, "2♣", "3♦", "4♥", "K♠")
    await engine.place_bet(10)

    with patch.object(asyncio, "sleep", new_callable=AsyncMock) as sleep:
        await engine.deal()
    assert sleep.await_count == 3
    assert all(call.args[0] == 0.25 for call in sleep.await_args_list)


@pytest.mark.asyncio
async def test_turn_timer_expires_into_stand(adapter, event_bus):
    engine = BlackjackEngine(
        adapter, settings=timed_settings(2), event_bus=event_bus, tick_seconds=0.01
    )
    await engine.initialize()
    stack(engine, "10♠", "10♥", "7♦", "8♣")
    await engine.place_bet(20)
    snapshot = await engine.deal()
    assert snapshot["turn_time_left"] == 2
    assert snapshot["timer_active"]
    assert engine.turn_deadline is not None

    await wait_for_stage(engine, RoundStage.GAME_OVER)

    events = adapter.event_types()
    assert events.count("TURN_TIMER_TICK") == 2
    assert "PLAYER_TIMEOUT" in events
    assert engine.state.outcome.value == "dealer"
    assert engine.turn_deadline is None
    await engine.shutdown()


@pytest.mark.asyncio
async def test_hit_restarts_turn_timer(adapter, event_bus):
    engine = BlackjackEngine(
        adapter, settings=timed_settings(50), event_bus=event_bus, tick_seconds=0.01
    )
    await engine.initialize()
    stack(engine, "2♣", "3♦", "4♥", "K♠", "5♠")
    await engine.place_bet(20)
    await engine.deal()
    await asyncio.sleep(0.05)
    assert engine.state.turn_time_left < 50

    snapshot = await engine.hit()
    assert snapshot["turn_time_left"] == 50
    await engine.shutdown()


@pytest.mark.asyncio
async def test_shutdown_cancels_turn_timer(adapter, event_bus):
    engine = BlackjackEngine(
        adapter, settings=timed_settings(3), event_bus=event_bus, tick_seconds=0.01
    )
    await engine.initialize()
    stack(engine, "2♣", "3♦", "4♥", "K♠")
    await engine.place_bet(20)
    await engine.deal()
    await engine.shutdown()

    await asyncio.sleep(0.1)
    assert engine.state.stage is RoundStage.PLAYER_TURN
    assert "PLAYER_TIMEOUT" not in adapter.event_types()


@pytest.mark.asyncio
async def test_untimed_turn_waits_for_player(engine):
    stack(engine, "2♣", "3♦", "4♥", "K♠")
    await engine.place_bet(20)
    snapshot = await engine.deal()
    assert not snapshot["timer_active"]
    assert engine.turn_deadline is None
    await asyncio.sleep(0.05)
    assert engine.state.stage is RoundStage.PLAYER_TURN


@pytest.mark.asyncio
async def test_update_settings_reshuffles_on_deck_change(engine, adapter):
    snapshot = await engine.update_settings({"num_decks": 2})
    assert snapshot["shoe_size"] == 104
    assert snapshot["settings"]["num_decks"] == 2
    events = adapter.event_types()
    assert "SETTINGS_CHANGED" in events
    assert "SHUFFLE" in events


@pytest.mark.asyncio
async def test_update_settings_rejected_during_hand(engine):
    stack(engine, "2♣", "3♦", "4♥", "K♠")
    await engine.place_bet(20)
    await engine.deal()
    with pytest.raises(InvalidTransitionError):
        await engine.update_settings({"num_decks": 4})
    assert engine.state.settings.num_decks == 1


@pytest.mark.asyncio
async def test_unknown_setting_is_rejected_with_warning(engine, adapter):
    before = engine.state
    with pytest.raises(ConfigurationError):
        await engine.update_settings({"bogus": 1})
    assert engine.state is before
    name, data = adapter.events[-1]
    assert name == "WARNING"
    assert data["action"] == "update settings"
    assert "bogus" in data["reason"]


@pytest.mark.asyncio
async def test_reshuffle_before_deal_is_announced(engine, adapter):
    stack(engine, "2♣", "3♦", "4♥", "K♠")
    engine.state = replace(
        engine.state, shoe=replace(engine.state.shoe, original_size=200)
    )
    await engine.place_bet(10)
    await engine.deal()
    events = adapter.event_types()
    assert "SHUFFLE" in events
    assert events.index("SHUFFLE") < events.index("CARD_DEALT")
    assert engine.state.shoe_number == 2


@pytest.mark.asyncio
async def test_betting_helpers(engine):
    snapshot = await engine.add_chip(25)
    assert snapshot["current_bet"] == 25
    snapshot = await engine.add_chip(100)
    assert snapshot["current_bet"] == 125
    snapshot = await engine.remove_chip(25)
    assert snapshot["current_bet"] == 100
    snapshot = await engine.clear_bet()
    assert snapshot["stage"] == "waiting"
    snapshot = await engine.bet_recommended()
    assert snapshot["current_bet"] == snapshot["recommended_bet"]


@pytest.mark.asyncio
async def test_reset_stats_and_chip_pot(engine):
    stack(engine, "10♠", "9♦", "6♣", "7♠", "K♥")
    await engine.place_bet(100)
    await engine.deal()
    await engine.hit()
    assert engine.state.chip_pot == 900

    snapshot = await engine.reset_stats()
    assert snapshot["stats"]["games_played"] == 0
    snapshot = await engine.reset_chip_pot()
    assert snapshot["chip_pot"] == 1000


@pytest.mark.asyncio
async def test_session_is_restored_and_recorded(adapter, event_bus, instant_settings):
    store = MemoryStore({CHIP_POT_KEY: "750"})
    repository = SessionRepository(store)
    engine = BlackjackEngine(
        adapter,
        settings=instant_settings,
        repository=repository,
        event_bus=event_bus,
    )
    await engine.initialize()
    assert engine.snapshot()["chip_pot"] == 750

    stack(engine, "10♠", "5♦", "A♥", "9♣")
    await engine.place_bet(20)
    await engine.deal()
    assert store.data[CHIP_POT_KEY] == "780"
    assert json.loads(store.data[STATS_KEY])["blackjacks"] == 1

    await engine.update_settings({"show_card_counter": True})
    assert json.loads(store.data[SETTINGS_KEY])["show_card_counter"] is True

    await engine.shutdown()
    assert event_bus.listener_count(EngineEventType.STATS_UPDATED) == 0


@pytest.mark.asyncio
async def test_settings_loaded_from_repository(adapter, event_bus):
    saved = timed_settings(0).merge(num_decks=3)
    store = MemoryStore({SETTINGS_KEY: json.dumps(saved.to_dict())})
    engine = BlackjackEngine(
        adapter, repository=SessionRepository(store), event_bus=event_bus
    )
    await engine.initialize()
    assert engine.state.settings == saved
    assert engine.snapshot()["shoe_size"] == 156
    await engine.shutdown()


def exported_session(settings, chip_pot, stats):
    repository = SessionRepository(MemoryStore())
    repository.save_settings(settings)
    repository.save_chip_pot(chip_pot)
    repository.save_stats(stats)
    return repository.export_data()


@pytest_asyncio.fixture
async def stored_engine(adapter, event_bus, instant_settings):
    store = MemoryStore({CHIP_POT_KEY: "750"})
    engine = BlackjackEngine(
        adapter,
        settings=instant_settings,
        repository=SessionRepository(store),
        event_bus=event_bus,
    )
    await engine.initialize()
    yield engine, store
    await engine.shutdown()


@pytest.mark.asyncio
async def test_import_session_replaces_the_session(stored_engine, adapter, instant_settings):
    engine, store = stored_engine
    await engine.place_bet(20)

    document = exported_session(
        instant_settings.merge(num_decks=2), 1337, GameStats(wins=7, blackjacks=2)
    )
    snapshot = await engine.import_session(document)

    assert snapshot["stage"] == "waiting"
    assert snapshot["current_bet"] == 0
    assert snapshot["chip_pot"] == 1337
    assert snapshot["stats"]["wins"] == 7
    assert snapshot["settings"]["num_decks"] == 2
    assert snapshot["shoe_size"] == 104
    assert "SHUFFLE" in adapter.event_types()
    assert store.data[CHIP_POT_KEY] == "1337"
    assert json.loads(await engine.export_session())["chipPot"] == 1337


@pytest.mark.asyncio
async def test_invalid_import_changes_nothing(stored_engine, adapter):
    engine, store = stored_engine
    before = engine.state
    with pytest.raises(ConfigurationError):
        await engine.import_session("not json")
    assert engine.state is before
    assert store.data == {CHIP_POT_KEY: "750"}
    assert adapter.event_types()[-1] == "WARNING"


@pytest.mark.asyncio
async def test_import_rejected_during_hand(stored_engine, instant_settings):
    engine, store = stored_engine
    stack(engine, "2♣", "3♦", "4♥", "K♠")
    await engine.place_bet(20)
    await engine.deal()

    document = exported_session(instant_settings, 5000, GameStats())
    with pytest.raises(InvalidTransitionError):
        await engine.import_session(document)
    assert engine.state.chip_pot == 750
    assert store.data[CHIP_POT_KEY] == "750"


@pytest.mark.asyncio
async def test_reset_session_restores_defaults(stored_engine):
    engine, store = stored_engine
    await engine.update_settings({"num_decks": 3})

    snapshot = await engine.reset_session()
    assert snapshot["chip_pot"] == 1000
    assert snapshot["stats"]["wins"] == 0
    assert snapshot["settings"] == GameSettings().to_dict()
    assert SessionRepository(store).load_chip_pot() == 1000
    assert SessionRepository(store).load_settings() == GameSettings()


@pytest.mark.asyncio
async def test_session_commands_need_a_store(engine):
    with pytest.raises(InvalidTransitionError):
        await engine.export_session()
    with pytest.raises(InvalidTransitionError):
        await engine.reset_session()


@pytest.mark.asyncio
async def test_events_carry_game_context(engine, event_bus):
    listener = MagicMock()
    event_bus.on(EngineEventType.HAND_RESULT, listener)
    stack(engine, "10♠", "5♦", "A♥", "9♣")
    await engine.place_bet(20)
    await engine.deal()
    data = listener.call_args[0][0]
    assert data["game_id"] == engine.game_id
    assert data["round_id"] == engine.state.id
    assert data["chip_delta"] == 30
