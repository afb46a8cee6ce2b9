"""
Command-line blackjack with card counting.

Run with ``python -m countsharp`` (or the ``countsharp`` script) and type
``help`` at the prompt for the list of commands.
"""

import argparse
import asyncio
import logging
import random
from typing import Callable, List, Optional

from countsharp.adapters import CLIAdapter
from countsharp.config import MAX_DECKS, MIN_DECKS, GameSpeed
from countsharp.engine import BlackjackEngine
from countsharp.errors import (
    ConfigurationError,
    InvalidBetError,
    InvalidTransitionError,
)
from countsharp.storage import MemoryStore, SessionRepository, SQLiteStore

logger = logging.getLogger("countsharp.cli")

HELP_TEXT = """\
    bet N       place a bet of N chips
    chip N      add one chip of denomination N to the bet
    rec         bet the count-based recommendation
    clear       clear the current bet
    deal        deal a round
    hit         take a card
    stand       end your turn
    new         clear the table after a round
    decks N     play with N decks (reshuffles)
    speed NAME  beginner, medium, fast or slow
    counter     toggle the card counter display
    stats       show session statistics
    export PATH save the session to a JSON file
    import PATH load a session saved with export
    reset       forget the saved session and start over
    quit        leave the table"""


class BlackjackCLI:
    """Read commands from the terminal and drive a `BlackjackEngine`."""

    def __init__(
        self, engine: BlackjackEngine, output: Optional[Callable[[str], None]] = None
    ):
        self.engine = engine
        self.output = output or print
        self.running = False

    async def run(self) -> None:
        """Play until the user quits or input ends."""
        await self.engine.initialize()
        self.output("Type 'help' for a list of commands.")
        self.running = True
        loop = asyncio.get_running_loop()
        try:
            while self.running:
                try:
                    line = await loop.run_in_executor(None, input, "> ")
                except EOFError:
                    break
                await self.handle_command(line)
        finally:
            await self.engine.shutdown()

    async def handle_command(self, line: str) -> None:
        """
        Execute one command line.

        Rejected actions are reported to the user; the game carries on.
        """
        parts = line.strip().split()
        if not parts:
            return
        command, args = parts[0].lower(), parts[1:]
        engine = self.engine

        try:
            if command == "bet":
                await engine.place_bet(self._int_arg(args, "bet N"))
            elif command == "chip":
                await engine.add_chip(self._int_arg(args, "chip N"))
            elif command == "rec":
                await engine.bet_recommended()
            elif command == "clear":
                await engine.clear_bet()
            elif command == "deal":
                await engine.deal()
            elif command in ("hit", "h"):
                await engine.hit()
            elif command in ("stand", "s"):
                await engine.stand()
            elif command == "new":
                await engine.new_round()
            elif command == "decks":
                await engine.update_settings({"num_decks": self._int_arg(args, "decks N")})
            elif command == "speed":
                if not args:
                    raise ValueError("Usage: speed NAME")
                await engine.update_settings({"speed": args[0].lower()})
            elif command == "counter":
                showing = engine.state.settings.show_card_counter
                await engine.update_settings({"show_card_counter": not showing})
            elif command == "stats":
                self.print_stats()
            elif command == "export":
                path = self._path_arg(args, "export PATH")
                data = await engine.export_session()
                with open(path, "w", encoding="utf-8") as f:
                    f.write(data)
                self.output(f"Session saved to {path}")
            elif command == "import":
                path = self._path_arg(args, "import PATH")
                with open(path, encoding="utf-8") as f:
                    data = f.read()
                await engine.import_session(data)
                self.output(f"Session loaded from {path}")
            elif command == "reset":
                await engine.reset_session()
                self.output("Session reset")
            elif command == "help":
                self.output(HELP_TEXT)
            elif command in ("quit", "exit", "q"):
                self.running = False
            else:
                self.output(f"Unknown command '{command}'. Type 'help' for commands.")
        except (InvalidBetError, InvalidTransitionError) as e:
            self.output(str(e))
        except ValueError as e:
            self.output(str(e))
        except OSError as e:
            logger.warning(f"Session file error: {e}")
            self.output(f"Could not access {e.filename}: {e.strerror}")

    def print_stats(self) -> None:
        report = self.engine.state.stats.report()
        self.output(
            f"Games: {report['games_played']} | Wins: {report['wins']} | "
            f"Losses: {report['losses']} | Pushes: {report['pushes']}"
        )
        self.output(
            f"Blackjacks: {report['blackjacks']} | Busts: {report['busts']} | "
            f"Net chips: {report['net_chips']:+d}"
        )

    @staticmethod
    def _path_arg(args: List[str], usage: str) -> str:
        if len(args) != 1:
            raise ValueError(f"Usage: {usage}")
        return args[0]

    @staticmethod
    def _int_arg(args: List[str], usage: str) -> int:
        if len(args) != 1:
            raise ValueError(f"Usage: {usage}")
        try:
            return int(args[0])
        except ValueError:
            raise ValueError(f"Usage: {usage}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="countsharp", description="Play blackjack and practice Hi-Lo counting."
    )
    parser.add_argument(
        "--decks",
        type=int,
        choices=range(MIN_DECKS, MAX_DECKS + 1),
        metavar=f"{{{MIN_DECKS}-{MAX_DECKS}}}",
        help="number of decks in the shoe (default: saved setting)",
    )
    parser.add_argument(
        "--speed",
        choices=[speed.value for speed in GameSpeed if speed is not GameSpeed.CUSTOM],
        help="game speed (default: saved setting)",
    )
    parser.add_argument(
        "--db", type=str, help="SQLite file to keep the session in (default: memory)"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging level (default: WARNING)",
    )
    parser.add_argument("--seed", type=int, help="seed the shuffle for a repeatable shoe")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    store = SQLiteStore(args.db) if args.db else MemoryStore()
    repository = SessionRepository(store)

    changes = {}
    if args.decks is not None:
        changes["num_decks"] = args.decks
    if args.speed is not None:
        changes["speed"] = args.speed
    try:
        settings = repository.load_settings().merge(**changes)
    except ConfigurationError as e:
        parser.error(str(e))

    rng = random.Random(args.seed) if args.seed is not None else None
    engine = BlackjackEngine(
        adapter=CLIAdapter(), settings=settings, repository=repository, rng=rng
    )

    try:
        asyncio.run(BlackjackCLI(engine).run())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        store.close()


if __name__ == "__main__":
    main()
