"""
Blackjack engine implementation.

This module provides the BlackjackEngine class, which runs the round state
machine in real time: it paces the deal, owns the player's turn timer,
serializes player actions and announces every change on the event bus.

All game rules live in the pure transitions of `countsharp.state`; the engine
only decides when to apply them.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Mapping, Optional, Union
import asyncio
import logging
import random
import uuid

from countsharp.adapters import PlatformAdapter
from countsharp.blackjack.hand import should_dealer_hit
from countsharp.blackjack.rules import Outcome
from countsharp.common.card import Card
from countsharp.config import DEFAULT_CHIP_POT, GameSettings
from countsharp.engine.base import CountsharpEngine
from countsharp.errors import (
    ConfigurationError,
    EmptyShoeError,
    InvalidBetError,
    InvalidTransitionError,
)
from countsharp.events import EngineEventType, EventEmitter
from countsharp.state import (
    IDLE_STAGES,
    INITIAL_DEAL_ORDER,
    RoundStage,
    RoundState,
    StateTransitionEngine,
)
from countsharp.storage import SessionRecorder, SessionRepository

logger = logging.getLogger("countsharp.engine")


class BlackjackEngine(CountsharpEngine):
    """
    Engine implementation for single-player blackjack with card counting.

    Every action method returns the new snapshot. Rejected actions raise
    `InvalidBetError`, `InvalidTransitionError` or `ConfigurationError` and
    leave the state as it was. Actions arriving while the deal or the
    dealer's turn is being played out are rejected rather than queued.
    """

    def __init__(
        self,
        adapter: Optional[PlatformAdapter] = None,
        settings: Optional[GameSettings] = None,
        repository: Optional[SessionRepository] = None,
        event_bus: Optional[EventEmitter] = None,
        rng: Optional[random.Random] = None,
        tick_seconds: float = 1.0,
    ):
        """
        Initialize the blackjack engine.

        Args:
            adapter: Platform adapter to use for rendering
            settings: Settings to start with. When omitted they are loaded
                      from the repository, or defaults are used.
            repository: Session persistence. Chip pot and statistics are
                        restored from it and every change is written back.
            event_bus: Event emitter (defaults to the global EventBus)
            rng: Random source for shuffling
            tick_seconds: Length of one turn-timer tick
        """
        super().__init__(adapter, event_bus)
        self.settings = settings
        self.repository = repository
        self.rng = rng
        self.tick_seconds = tick_seconds
        self.game_id = str(uuid.uuid4())

        self._lock = asyncio.Lock()
        self._sequence_running = False
        self._timer_task: Optional[asyncio.Task] = None
        self._turn_deadline: Optional[float] = None
        self._recorder: Optional[SessionRecorder] = None

        self.state: RoundState = StateTransitionEngine.new_session(
            settings or GameSettings(), rng=rng
        )

    async def initialize(self) -> None:
        """
        Initialize the engine and prepare for a game.

        Restores the session from the repository and deals from a fresh shoe.
        """
        await super().initialize()

        settings = self.settings
        chip_pot = DEFAULT_CHIP_POT
        stats = None
        if self.repository is not None:
            if settings is None:
                settings = self.repository.load_settings()
            chip_pot = self.repository.load_chip_pot()
            stats = self.repository.load_stats()
            self._recorder = SessionRecorder(self.repository, self.event_bus)
            self._recorder.attach()

        self.state = StateTransitionEngine.new_session(
            settings or GameSettings(), chip_pot=chip_pot, stats=stats, rng=self.rng
        )
        self.event_bus.set_context(self.game_id, None)

        logger.info(
            f"Engine ready: {self.state.settings.num_decks} deck(s), "
            f"{self.state.chip_pot} chips"
        )
        await self.emit(
            EngineEventType.ENGINE_INIT,
            {
                "engine_type": "blackjack",
                "settings": self.state.settings.to_dict(),
                "chip_pot": self.state.chip_pot,
            },
        )
        await self.render_state()

    async def shutdown(self) -> None:
        """
        Shut down the engine and clean up resources.
        """
        await self._stop_turn_timer()
        await self.emit(EngineEventType.ENGINE_SHUTDOWN, {"game_id": self.game_id})
        if self._recorder is not None:
            self._recorder.detach()
            self._recorder = None
        await super().shutdown()

    def snapshot(self) -> Dict[str, Any]:
        return self.state.to_dict()

    @property
    def turn_deadline(self) -> Optional[float]:
        """Event-loop time at which the player is stood automatically, if timed."""
        return self._turn_deadline

    # Betting

    async def place_bet(self, amount: int) -> Dict[str, Any]:
        """
        Place a bet for the next round.

        Args:
            amount: Chips to wager, between 1 and the chip pot
        """
        async with self._exclusive("bet"):
            await self._commit(StateTransitionEngine.place_bet(self.state, amount))
            await self._announce_bet()
        return self.snapshot()

    async def add_chip(self, denomination: int) -> Dict[str, Any]:
        async with self._exclusive("add chip"):
            await self._commit(StateTransitionEngine.add_chip(self.state, denomination))
            await self._announce_bet()
        return self.snapshot()

    async def remove_chip(self, denomination: int) -> Dict[str, Any]:
        async with self._exclusive("remove chip"):
            await self._commit(
                StateTransitionEngine.remove_chip(self.state, denomination)
            )
            await self._announce_bet()
        return self.snapshot()

    async def bet_recommended(self) -> Dict[str, Any]:
        """Bet the amount suggested by the current true count."""
        async with self._exclusive("bet recommended"):
            await self._commit(StateTransitionEngine.bet_recommended(self.state))
            await self._announce_bet()
        return self.snapshot()

    async def clear_bet(self) -> Dict[str, Any]:
        async with self._exclusive("clear bet"):
            await self._commit(StateTransitionEngine.clear_bet(self.state))
            await self._announce_bet()
        return self.snapshot()

    # Round flow

    async def deal(self) -> Dict[str, Any]:
        """
        Deal a new round with the current bet.

        Reshuffles first when the shoe has passed the cut card, then deals
        player, dealer, player, dealer (face down) with a pause between cards.
        """
        async with self._exclusive("deal"):
            state = StateTransitionEngine.begin_deal(self.state, self.rng)
            self._sequence_running = True
            try:
                await self._play_deal(state)
            finally:
                self._sequence_running = False
        return self.snapshot()

    async def hit(self) -> Dict[str, Any]:
        """
        Draw a card for the player.
        """
        async with self._exclusive("hit"):
            state = StateTransitionEngine.hit(self.state)
            self._cancel_turn_timer()
            await self.emit(EngineEventType.PLAYER_ACTION, {"action": "HIT"})
            await self._announce_card(state.player_hand.cards[-1], False, state)
            await self._commit(state)
            if state.stage is RoundStage.GAME_OVER:
                await self._announce_settlement()
            else:
                self._start_turn_timer()
        return self.snapshot()

    async def stand(self) -> Dict[str, Any]:
        """
        End the player's turn and play out the dealer's hand.
        """
        async with self._exclusive("stand"):
            await self._stand(timed_out=False)
        return self.snapshot()

    async def new_round(self) -> Dict[str, Any]:
        """
        Clear the table after a settled round.
        """
        async with self._exclusive("new round"):
            await self._commit(StateTransitionEngine.new_round(self.state))
            self.event_bus.set_context(self.game_id, None)
        return self.snapshot()

    # Session management

    async def update_settings(
        self, settings: Union[GameSettings, Mapping[str, Any]]
    ) -> Dict[str, Any]:
        """
        Apply new settings between hands.

        Args:
            settings: Complete settings, or a mapping of the fields to change

        Raises:
            ConfigurationError: If the new settings are invalid
        """
        async with self._exclusive("update settings"):
            if not isinstance(settings, GameSettings):
                settings = self.state.settings.merge(**dict(settings))
            previous_shoe = self.state.shoe_number
            state = StateTransitionEngine.update_settings(self.state, settings, self.rng)
            await self._commit(state)
            await self.emit(
                EngineEventType.SETTINGS_CHANGED, {"settings": settings.to_dict()}
            )
            if state.shoe_number != previous_shoe:
                await self._announce_shuffle()
        return self.snapshot()

    async def reset_stats(self) -> Dict[str, Any]:
        async with self._exclusive("reset stats"):
            await self._commit(StateTransitionEngine.reset_stats(self.state))
            await self.emit(
                EngineEventType.STATS_UPDATED, {"stats": self.state.stats.to_dict()}
            )
        return self.snapshot()

    async def reset_chip_pot(self) -> Dict[str, Any]:
        async with self._exclusive("reset chip pot"):
            await self._commit(StateTransitionEngine.reset_chip_pot(self.state))
            await self.emit(
                EngineEventType.BANKROLL_UPDATED,
                {"chip_pot": self.state.chip_pot, "chip_delta": 0},
            )
        return self.snapshot()

    async def export_session(self) -> str:
        """Stored settings, chip pot and statistics as a JSON document."""
        async with self._exclusive("export session"):
            return self._session_repository("export session").export_data()

    async def import_session(self, json_data: str) -> Dict[str, Any]:
        """
        Replace the stored session with an exported document and play on with it.

        Raises:
            ConfigurationError: If the document is invalid; nothing is imported
        """
        async with self._exclusive("import session"):
            repository = self._session_repository("import session", between_hands=True)
            if not repository.import_data(json_data):
                raise ConfigurationError("Invalid session data, nothing was imported")
            await self._restore_session(repository)
        return self.snapshot()

    async def reset_session(self) -> Dict[str, Any]:
        """Forget the stored session and start over from the defaults."""
        async with self._exclusive("reset session"):
            repository = self._session_repository("reset session", between_hands=True)
            if not repository.reset_all():
                logger.warning("Stored session could not be fully cleared")
            await self._restore_session(repository)
        return self.snapshot()

    # Internals

    @asynccontextmanager
    async def _exclusive(self, action: str):
        """
        Run one action with the engine lock held.

        Rejections are logged and announced before being re-raised.
        """
        if self._sequence_running:
            error = InvalidTransitionError(
                action, self.state.stage, f"Cannot {action} while the round is being played out"
            )
            await self._reject(action, error)
            raise error
        async with self._lock:
            try:
                yield
            except (InvalidBetError, InvalidTransitionError, ConfigurationError) as e:
                await self._reject(action, e)
                raise
            except EmptyShoeError as e:
                logger.critical(f"Shoe exhausted during {action}: {e}")
                await self.emit(EngineEventType.ERROR, {"action": action, "error": str(e)})
                raise

    async def _reject(self, action: str, error: Exception) -> None:
        logger.warning(f"Rejected {action}: {error}")
        await self.emit(
            EngineEventType.WARNING,
            {"action": action, "reason": str(error), "stage": self.state.stage.value},
        )

    def _session_repository(
        self, action: str, between_hands: bool = False
    ) -> SessionRepository:
        if self.repository is None:
            raise InvalidTransitionError(
                action, self.state.stage, "No session store is configured"
            )
        if between_hands and self.state.stage not in IDLE_STAGES:
            raise InvalidTransitionError(action, self.state.stage)
        return self.repository

    async def _restore_session(self, repository: SessionRepository) -> None:
        previous_shoe = self.state.shoe_number
        state = StateTransitionEngine.restore_session(
            self.state,
            repository.load_settings(),
            repository.load_chip_pot(),
            repository.load_stats(),
            self.rng,
        )
        await self._commit(state)
        await self.emit(
            EngineEventType.SETTINGS_CHANGED, {"settings": state.settings.to_dict()}
        )
        await self.emit(
            EngineEventType.BANKROLL_UPDATED, {"chip_pot": state.chip_pot, "chip_delta": 0}
        )
        await self.emit(EngineEventType.STATS_UPDATED, {"stats": state.stats.to_dict()})
        if state.shoe_number != previous_shoe:
            await self._announce_shuffle()

    async def _commit(self, state: RoundState) -> None:
        """Adopt a new state, announce what changed and re-render."""
        previous = self.state
        self.state = state

        if state.stage is not previous.stage:
            logger.debug(f"Stage {previous.stage.value} -> {state.stage.value}")
            await self.emit(
                EngineEventType.STAGE_CHANGED,
                {"from": previous.stage.value, "to": state.stage.value},
            )
        if state.counting != previous.counting:
            await self.emit(
                EngineEventType.COUNT_UPDATED,
                {
                    "running_count": state.counting.running_count,
                    "true_count": state.true_count,
                    "recommended_bet": state.recommended_bet,
                },
            )

        snapshot = self.snapshot()
        self.event_bus.emit(EngineEventType.UI_UPDATE_NEEDED, snapshot)
        await self.adapter.render_game_state(snapshot)

    async def _pause(self) -> None:
        delay_ms = self.state.settings.animation_speed
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000.0)

    async def _play_deal(self, state: RoundState) -> None:
        shuffled = state.shoe_number != self.state.shoe_number
        self.event_bus.set_context(self.game_id, state.id)
        await self._commit(state)
        if shuffled:
            await self._announce_shuffle()
            await self._pause()
        await self.emit(
            EngineEventType.ROUND_STARTED,
            {"round_number": state.round_number, "bet": state.current_bet},
        )

        for index, (to_dealer, visible) in enumerate(INITIAL_DEAL_ORDER):
            if index:
                await self._pause()
            state = StateTransitionEngine.deal_card(self.state, to_dealer, visible)
            hand = state.dealer_hand if to_dealer else state.player_hand
            await self._announce_card(hand.cards[-1], to_dealer, state)
            await self._commit(state)

        state = StateTransitionEngine.finish_deal(self.state)
        await self._commit(state)
        if state.stage is RoundStage.GAME_OVER:
            await self._announce_settlement()
        else:
            self._start_turn_timer()

    async def _stand(self, timed_out: bool) -> None:
        state = StateTransitionEngine.stand(self.state)
        self._cancel_turn_timer()
        if timed_out:
            logger.info("Turn timer expired, standing")
            await self.emit(EngineEventType.PLAYER_TIMEOUT, {"action": "STAND"})
        await self.emit(
            EngineEventType.PLAYER_ACTION, {"action": "STAND", "timed_out": timed_out}
        )
        await self._commit(state)

        self._sequence_running = True
        try:
            await self._play_dealer_turn()
        finally:
            self._sequence_running = False

    async def _play_dealer_turn(self) -> None:
        await self._pause()
        hole_cards = self.state.dealer_hand.hidden_cards
        state = StateTransitionEngine.reveal_hole_card(self.state)
        await self._announce_reveals(hole_cards)
        await self._commit(state)

        while should_dealer_hit(self.state.dealer_hand):
            await self._pause()
            state = StateTransitionEngine.dealer_hit(self.state)
            await self.emit(EngineEventType.DEALER_ACTION, {"action": "HIT"})
            await self._announce_card(state.dealer_hand.cards[-1], True, state)
            await self._commit(state)

        if not self.state.dealer_hand.is_bust:
            await self.emit(
                EngineEventType.DEALER_ACTION,
                {"action": "STAND", "value": self.state.dealer_hand.value},
            )
        await self._commit(StateTransitionEngine.finish_dealer_turn(self.state))
        await self._announce_settlement()

    # Turn timer

    def _start_turn_timer(self) -> None:
        self._cancel_turn_timer()
        if not self.state.timer_active:
            return
        loop = asyncio.get_running_loop()
        self._turn_deadline = loop.time() + self.state.turn_time_left * self.tick_seconds
        self._timer_task = asyncio.create_task(self._run_turn_timer(self.state.id))

    def _cancel_turn_timer(self) -> None:
        task = self._timer_task
        self._timer_task = None
        self._turn_deadline = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _stop_turn_timer(self) -> None:
        task = self._timer_task
        self._cancel_turn_timer()
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run_turn_timer(self, round_id: str) -> None:
        """Count the turn down once per tick and stand the player at zero."""
        while True:
            await asyncio.sleep(self.tick_seconds)
            async with self._lock:
                if self.state.id != round_id or not self.state.timer_active:
                    return
                state = StateTransitionEngine.tick(self.state)
                await self.emit(
                    EngineEventType.TURN_TIMER_TICK,
                    {"turn_time_left": state.turn_time_left},
                )
                await self._commit(state)
                if state.turn_time_left <= 0:
                    try:
                        await self._stand(timed_out=True)
                    except EmptyShoeError as e:
                        # Nobody awaits this task, so report here
                        logger.critical(f"Shoe exhausted during timed stand: {e}")
                        await self.emit(
                            EngineEventType.ERROR, {"action": "stand", "error": str(e)}
                        )
                    return

    # Announcements

    async def _announce_bet(self) -> None:
        await self.emit(
            EngineEventType.PLAYER_BET,
            {
                "amount": self.state.current_bet,
                "chip_pot": self.state.chip_pot,
                "recommended_bet": self.state.recommended_bet,
            },
        )

    async def _announce_card(self, card: Card, to_dealer: bool, state: RoundState) -> None:
        await self.emit(
            EngineEventType.CARD_DEALT,
            {
                "card": card.to_dict(),
                "to_dealer": to_dealer,
                "is_hole_card": not card.visible,
                "shoe_size": state.shoe.size,
            },
        )

    async def _announce_shuffle(self) -> None:
        logger.info(f"Reshuffled shoe #{self.state.shoe_number}")
        await self.emit(
            EngineEventType.SHUFFLE,
            {
                "shoe_number": self.state.shoe_number,
                "deck_count": self.state.settings.num_decks,
                "cards_remaining": self.state.shoe.size,
            },
        )

    async def _announce_reveals(self, cards) -> None:
        for card in cards:
            await self.emit(
                EngineEventType.CARD_REVEALED,
                {"card": card.with_visibility(True).to_dict(), "to_dealer": True},
            )

    async def _announce_settlement(self) -> None:
        state = self.state
        if state.player_hand.is_bust:
            await self.emit(
                EngineEventType.HAND_BUSTED, {"value": state.player_hand.value}
            )
        if state.player_hand.is_blackjack or state.dealer_hand.is_blackjack:
            await self.emit(
                EngineEventType.BLACKJACK,
                {
                    "player": state.player_hand.is_blackjack,
                    "dealer": state.dealer_hand.is_blackjack,
                },
            )
        logger.info(
            f"Round {state.round_number}: {state.outcome.value} ({state.chip_delta:+d})"
        )
        await self.emit(
            EngineEventType.HAND_RESULT,
            {
                "outcome": state.outcome.value,
                "player_won": state.outcome.player_won,
                "push": state.outcome is Outcome.PUSH,
                "bet": state.current_bet,
                "chip_delta": state.chip_delta,
                "player_value": state.player_hand.value,
                "dealer_value": state.dealer_hand.value,
            },
        )
        await self.emit(
            EngineEventType.BANKROLL_UPDATED,
            {"chip_pot": state.chip_pot, "chip_delta": state.chip_delta},
        )
        await self.emit(EngineEventType.STATS_UPDATED, {"stats": state.stats.to_dict()})
        await self.emit(
            EngineEventType.ROUND_ENDED, {"round_number": state.round_number}
        )
