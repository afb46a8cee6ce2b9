"""
Tests for the command-line adapter and front end.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from countsharp.adapters import CLIAdapter
from countsharp.adapters.cli import format_hand
from countsharp.cli import BlackjackCLI, build_parser
from countsharp.common.card import parse_card
from countsharp.blackjack.hand import Hand
from countsharp.errors import InvalidTransitionError
from countsharp.events import EngineEventType
from countsharp.state import StateTransitionEngine


def test_format_hand():
    hand = Hand((parse_card("10♠"), parse_card("A♥", visible=False)))
    assert format_hand(hand.to_dict()) == "10♠ ?? (10)"
    assert format_hand(hand.reveal_all().to_dict()) == "10♠ A♥ (21)"
    assert format_hand(Hand().to_dict()) == "-"


@pytest.mark.asyncio
async def test_render_prints_table(instant_settings):
    lines = []
    adapter = CLIAdapter(output=lines.append)
    state = StateTransitionEngine.new_session(instant_settings)

    await adapter.render_game_state(state.to_dict())
    text = "\n".join(lines)
    assert "Pot: 1000" in text
    assert "Welcome to Blackjack!" in text
    assert "Running count" not in text


@pytest.mark.asyncio
async def test_render_shows_counter_when_enabled(instant_settings):
    lines = []
    adapter = CLIAdapter(output=lines.append)
    settings = instant_settings.merge(show_card_counter=True, show_detailed_counter=True)
    state = StateTransitionEngine.new_session(settings)

    await adapter.render_game_state(state.to_dict())
    text = "\n".join(lines)
    assert "Running count: +0" in text
    assert "Unseen: A:4" in text


@pytest.mark.asyncio
async def test_repeated_render_is_skipped(instant_settings):
    lines = []
    adapter = CLIAdapter(output=lines.append)
    snapshot = StateTransitionEngine.new_session(instant_settings).to_dict()

    await adapter.render_game_state(snapshot)
    count = len(lines)
    await adapter.render_game_state(snapshot)
    assert len(lines) == count


@pytest.mark.asyncio
async def test_notify_announces_shuffle():
    lines = []
    adapter = CLIAdapter(output=lines.append)
    await adapter.notify_game_event(EngineEventType.SHUFFLE, {"shoe_number": 2})
    await adapter.notify_game_event(EngineEventType.CARD_DEALT, {})
    assert lines == ["*** Shuffling a new shoe ***"]


def make_cli():
    engine = MagicMock()
    for name in (
        "place_bet",
        "add_chip",
        "bet_recommended",
        "deal",
        "hit",
        "stand",
        "update_settings",
        "import_session",
        "reset_session",
    ):
        setattr(engine, name, AsyncMock(return_value={}))
    engine.export_session = AsyncMock(return_value='{"chipPot": 1337}')
    lines = []
    return BlackjackCLI(engine, output=lines.append), engine, lines


@pytest.mark.asyncio
async def test_cli_dispatches_commands():
    cli, engine, _ = make_cli()
    await cli.handle_command("bet 25")
    await cli.handle_command("CHIP 5")
    await cli.handle_command("deal")
    await cli.handle_command("h")
    await cli.handle_command("decks 2")

    engine.place_bet.assert_awaited_once_with(25)
    engine.add_chip.assert_awaited_once_with(5)
    engine.deal.assert_awaited_once()
    engine.hit.assert_awaited_once()
    engine.update_settings.assert_awaited_once_with({"num_decks": 2})


@pytest.mark.asyncio
async def test_cli_reports_errors_and_keeps_running():
    cli, engine, lines = make_cli()
    cli.running = True
    engine.hit.side_effect = InvalidTransitionError("hit", reason="'hit' is not allowed during waiting")

    await cli.handle_command("hit")
    await cli.handle_command("bet lots")
    await cli.handle_command("dance")
    assert lines == [
        "'hit' is not allowed during waiting",
        "Usage: bet N",
        "Unknown command 'dance'. Type 'help' for commands.",
    ]
    assert cli.running

    await cli.handle_command("quit")
    assert not cli.running


def test_parser_options():
    args = build_parser().parse_args(["--decks", "6", "--speed", "fast", "--seed", "3"])
    assert args.decks == 6
    assert args.speed == "fast"
    assert args.seed == 3
    assert args.log_level == "WARNING"
    assert args.db is None


def test_parser_rejects_bad_deck_count():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--decks", "12"])


@pytest.mark.asyncio
async def test_cli_session_file_commands(tmp_path):
    cli, engine, lines = make_cli()
    path = tmp_path / "Backup.json"

    # File names keep their case even though commands do not
    await cli.handle_command(f"EXPORT {path}")
    assert path.read_text(encoding="utf-8") == '{"chipPot": 1337}'

    await cli.handle_command(f"import {path}")
    engine.import_session.assert_awaited_once_with('{"chipPot": 1337}')

    await cli.handle_command("reset")
    engine.reset_session.assert_awaited_once()
    assert lines == [
        f"Session saved to {path}",
        f"Session loaded from {path}",
        "Session reset",
    ]


@pytest.mark.asyncio
async def test_cli_reports_missing_session_file(tmp_path):
    cli, engine, lines = make_cli()
    missing = tmp_path / "missing.json"

    await cli.handle_command(f"import {missing}")
    await cli.handle_command("import")
    engine.import_session.assert_not_awaited()
    assert lines == [
        f"Could not access {missing}: No such file or directory",
        "Usage: import PATH",
    ]
