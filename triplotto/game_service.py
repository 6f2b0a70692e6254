"""Game lifecycle orchestration: phases, ticket ledger, draw, settlement and claims."""

from __future__ import annotations

from datetime import timedelta
from functools import partial
import logging
from typing import Callable, Iterable, Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import GameSettings, load_settings
from .db.utils import dt_iso, ensure_utc
from .draw.numbers import (
    DrawOutcome,
    Seed,
    derive_winning_numbers,
    normalize_seed,
    validate_ticket_numbers,
)
from .draw.prizes import DEFAULT_PRIZE_POLICIES, PolicyRegistry, calculate_prizes
from .draw.seal import SealVault, UnsealOutcome
from .errors import (
    AlreadyClaimedError,
    CapacityError,
    InvalidConfigError,
    NotFoundError,
    OwnershipError,
    PaymentError,
    TimingError,
    ValidationError,
)
from .events import EventLog
from .models import (
    DrawResult,
    Game,
    GameEvent,
    GamePhase,
    GameResult,
    PlayerParticipation,
    SealedDraw,
    Ticket,
)
from .providers.interfaces import Clock, PaymentSink, RandomnessProvider, TimeLockProvider
from .providers.local import SystemClock

logger = logging.getLogger(__name__)

Duration = Union[int, timedelta]


def _seconds(value: Duration, name: str) -> int:
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigError(f"{name} must be a number of seconds or a timedelta")
    return value


def _require_int(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigError(f"{name} must be an integer, got {value!r}")
    return value


class GameService:
    """Public operation surface of the lottery engine.

    The service works on a caller-supplied SQLAlchemy session and never
    commits; wrap calls in ``Session.begin()``. Operations on one game are
    expected to be serialized by the caller. Mutating operations load the game
    row ``FOR UPDATE`` so databases with row locks enforce that.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    randomness : RandomnessProvider
        Source of draw seeds. Seeds arrive through
        :meth:`on_random_seed_received`.
    settings : Optional[GameSettings], default: None
        Defaults for new games. Loaded from the environment when omitted.
    time_lock : Optional[TimeLockProvider], default: None
        Enables delayed reveal. Unlock proofs arrive through
        :meth:`on_unlock_signal_received`.
    clock : Optional[Clock], default: None
        Time source; the system clock when omitted.
    payment_sink : Optional[PaymentSink], default: None
        Receives prize payouts and emergency withdrawals. Without one, claims
        are only tracked.
    policies : Optional[PolicyRegistry], default: None
        Prize policies available to games.
    event_log : Optional[EventLog], default: None
        Notification log; a session-backed one is created when omitted.
    draw_numbers : Optional[Callable[[Seed], Sequence[int]]], default: None
        Seed-to-numbers function; :func:`derive_winning_numbers` by default.
    """

    def __init__(
        self,
        session: Session,
        randomness: RandomnessProvider,
        *,
        settings: Optional[GameSettings] = None,
        time_lock: Optional[TimeLockProvider] = None,
        clock: Optional[Clock] = None,
        payment_sink: Optional[PaymentSink] = None,
        policies: Optional[PolicyRegistry] = None,
        event_log: Optional[EventLog] = None,
        draw_numbers: Optional[Callable[[Seed], Sequence[int]]] = None,
    ) -> None:
        self._session = session
        self._randomness = randomness
        self._settings = settings or load_settings()
        self._time_lock = time_lock
        self._clock = clock or SystemClock()
        self._payment_sink = payment_sink
        self._policies = policies or DEFAULT_PRIZE_POLICIES
        self.events = event_log or EventLog(session, clock=self._clock)
        self._draw_numbers = draw_numbers or partial(
            derive_winning_numbers, max_attempts=self._settings.max_draw_attempts
        )
        self.vault: Optional[SealVault] = (
            SealVault(session, time_lock, clock=self._clock)
            if time_lock is not None
            else None
        )

        if self._settings.prize_policy not in self._policies:
            raise InvalidConfigError(
                f"Unknown default prize policy '{self._settings.prize_policy}'"
            )

    # -------- lifecycle --------
    def create_game(
        self,
        max_tickets: Optional[int] = None,
        duration: Optional[Duration] = None,
        ticket_price: Optional[int] = None,
        *,
        prize_policy: Optional[str] = None,
        reveal_delay: Optional[Duration] = None,
    ) -> Game:
        """Create a game that is immediately ACTIVE.

        Parameters
        ----------
        max_tickets : Optional[int]
            Ticket capacity. Must be positive.
        duration : Optional[int | timedelta]
            Length of the sales window in seconds. Must be positive.
        ticket_price : Optional[int]
            Exact payment per ticket. Must be non-negative.
        prize_policy : Optional[str]
            Registry key of the prize policy.
        reveal_delay : Optional[int | timedelta]
            Seal the draw for this long before revealing it. ``0`` disables
            sealing for this game; ``None`` uses the configured default.

        Omitted values fall back to :class:`GameSettings`.

        Raises
        ------
        InvalidConfigError
            If any parameter is out of range, the policy is unknown, or a
            reveal delay is requested without a time-lock provider.
        """
        settings = self._settings
        max_tickets = _require_int(
            settings.max_tickets if max_tickets is None else max_tickets, "max_tickets"
        )
        ticket_price = _require_int(
            settings.ticket_price if ticket_price is None else ticket_price, "ticket_price"
        )
        duration_seconds = _seconds(
            settings.duration_seconds if duration is None else duration, "duration"
        )
        policy_key = prize_policy or settings.prize_policy

        if max_tickets <= 0:
            raise InvalidConfigError("max_tickets must be greater than zero")
        if duration_seconds <= 0:
            raise InvalidConfigError("duration must be greater than zero")
        if ticket_price < 0:
            raise InvalidConfigError("ticket_price must not be negative")
        if policy_key not in self._policies:
            raise InvalidConfigError(f"Unknown prize policy '{policy_key}'")

        if reveal_delay is None:
            delay_seconds = (
                settings.reveal_delay_seconds if self._time_lock is not None else None
            )
        else:
            delay_seconds = _seconds(reveal_delay, "reveal_delay")
            if delay_seconds < 0:
                raise InvalidConfigError("reveal_delay must not be negative")
            delay_seconds = delay_seconds or None
        if delay_seconds and self._time_lock is None:
            raise InvalidConfigError("Delayed reveal requires a time-lock provider")

        now = self._clock.now()
        game = Game(
            ticket_price=ticket_price,
            max_tickets=max_tickets,
            tickets_sold=0,
            prize_pool=0,
            total_paid_out=0,
            phase=GamePhase.ACTIVE.value,
            start_time=now,
            end_time=now + timedelta(seconds=duration_seconds),
            winning_numbers=[],
            numbers_generated=False,
            prize_policy=policy_key,
            reveal_delay_seconds=delay_seconds,
        )
        self._session.add(game)
        self._session.flush()

        self.events.record(
            game,
            "game_created",
            max_tickets=max_tickets,
            ticket_price=ticket_price,
            end_time=dt_iso(game.end_time),
            prize_policy=policy_key,
            reveal_delay_seconds=delay_seconds,
        )
        return game

    def purchase_ticket(
        self,
        game_id: int,
        player: str,
        numbers: Iterable[int],
        payment: int,
    ) -> Ticket:
        """Sell one ticket of ``game_id`` to ``player``.

        Raises
        ------
        PhaseError
            If the game is not ACTIVE.
        TimingError
            If the sales window has closed.
        CapacityError
            If every ticket has been sold.
        ValidationError
            If ``numbers`` or ``player`` are malformed.
        PaymentError
            If ``payment`` differs from the ticket price.
        """
        game = self._load_game(game_id, for_update=True)
        game.require_phase(GamePhase.ACTIVE)

        now = self._clock.now()
        if now >= ensure_utc(game.end_time):
            raise TimingError(f"Ticket sales for game {game.id} closed at {dt_iso(game.end_time)}")
        if game.tickets_sold >= game.max_tickets:
            raise CapacityError(f"Game {game.id} is sold out ({game.max_tickets} tickets)")

        picks = validate_ticket_numbers(numbers)
        if not isinstance(player, str) or not player.strip():
            raise ValidationError("player identity must be a non-empty string")
        if isinstance(payment, bool) or not isinstance(payment, int) or payment != game.ticket_price:
            raise PaymentError(
                f"Game {game.id} tickets cost exactly {game.ticket_price}, got {payment!r}"
            )

        ticket = Ticket(
            ticket_id=game.tickets_sold,
            player=player,
            numbers=list(picks),
            payment=payment,
            claimed=False,
            purchased_at=now,
        )
        game.tickets.append(ticket)
        game.tickets_sold += 1
        game.prize_pool += payment
        self._session.flush()
        PlayerParticipation.record(self._session, player, game.id, joined_at=now)

        self.events.record(
            game,
            "ticket_purchased",
            ticket_id=ticket.ticket_id,
            player=player,
            numbers=list(picks),
            prize_pool=game.prize_pool,
        )
        return ticket

    def end_game(self, game_id: int) -> str:
        """Close sales and request the draw seed.

        Returns
        -------
        str
            Id of the randomness request now outstanding for the game.

        Raises
        ------
        PhaseError
            If the game is not ACTIVE.
        TimingError
            If the sales window is still open.
        """
        game = self._load_game(game_id, for_update=True)
        game.require_phase(GamePhase.ACTIVE)

        now = self._clock.now()
        if now < ensure_utc(game.end_time):
            raise TimingError(f"Game {game.id} cannot end before {dt_iso(game.end_time)}")

        request_id = str(self._randomness.request_seed(self._settings.callback_budget))
        game.transition_to(GamePhase.DRAWING)
        game.pending_request_id = request_id
        self._session.flush()

        self.events.record(game, "draw_requested", request_id=request_id)
        return request_id

    def on_random_seed_received(self, request_id: str, seed: Seed) -> Optional[Game]:
        """Handle a seed delivered by the randomness provider.

        Only the request currently outstanding for a DRAWING game is
        accepted; anything else is logged and ignored. Without delayed reveal
        the game is settled at once, otherwise the draw is sealed.

        Returns
        -------
        Optional[Game]
            The updated game, or ``None`` when the callback was ignored.
        """
        request_id = str(request_id)
        game = Game.get_by_pending_request(self._session, request_id)
        if game is None or game.current_phase is not GamePhase.DRAWING:
            logger.warning(f"Ignoring seed for unknown or stale randomness request {request_id}")
            return None
        if game.reveal_delay_seconds and self.vault is None:
            raise InvalidConfigError(
                f"Game {game.id} needs delayed reveal but no time-lock provider is configured"
            )

        seed_hex = normalize_seed(seed).hex()
        numbers = validate_ticket_numbers(self._draw_numbers(seed))
        outcome = DrawOutcome(
            game_id=game.id,
            numbers=numbers,
            request_id=request_id,
            seed_hex=seed_hex,
            generated_at=self._clock.now(),
        )
        game.pending_request_id = None
        game.numbers_generated = True

        if not game.reveal_delay_seconds:
            self._settle(game, outcome, source="randomness")
            return game

        seal = self.vault.seal(game, outcome, timedelta(seconds=game.reveal_delay_seconds))
        game.transition_to(GamePhase.SEALED)
        self._session.flush()
        self.events.record(
            game,
            "draw_sealed",
            seal_id=seal.id,
            unlock_request_id=seal.request_id,
            unlock_time=dt_iso(seal.unlock_time),
        )
        return game

    def on_unlock_signal_received(
        self, request_id: str, unlock_proof: Union[bytes, str]
    ) -> Optional[UnsealOutcome]:
        """Handle an unlock proof delivered by the time-lock provider.

        A proof that does not open the seal is recorded and returned as a
        failed :class:`UnsealOutcome`; the game stays SEALED and can still be
        unlocked again or revealed through :meth:`emergency_reveal`.

        Returns
        -------
        Optional[UnsealOutcome]
            ``None`` when the request id is unknown.
        """
        if self.vault is None:
            logger.warning(f"Ignoring unlock signal {request_id}: delayed reveal is not configured")
            return None
        request_id = str(request_id)
        seal = SealedDraw.get_by_request(self._session, request_id)
        if seal is None:
            logger.warning(f"Ignoring unlock signal for unknown request {request_id}")
            return None

        game = self._load_game(seal.game_id, for_update=True)
        result = self.vault.unseal(request_id, unlock_proof)
        if not result.ok:
            logger.warning(
                f"Unlock signal {request_id} for game {game.id} failed: {result.error}"
            )
            self.events.record(
                game,
                "unseal_failed",
                unlock_request_id=request_id,
                failed_attempts=seal.failed_attempts,
            )
            return result

        if game.current_phase is GamePhase.SEALED:
            self._settle(game, result.outcome, source="randomness")
        return result

    def claim_prize(self, game_id: int, ticket_id: int, player: str) -> GameResult:
        """Pay out the prize recorded for a ticket and mark it claimed.

        Zero prizes skip the payout but are still marked claimed.

        Raises
        ------
        PhaseError
            If the game is not FINISHED.
        NotFoundError
            If the ticket does not exist.
        OwnershipError
            If ``player`` does not own the ticket.
        AlreadyClaimedError
            If the ticket was already claimed.
        """
        game = self._load_game(game_id, for_update=True)
        game.require_phase(GamePhase.FINISHED)

        ticket = Ticket.get_in_game(self._session, game.id, ticket_id)
        if ticket is None:
            raise NotFoundError(f"Game {game.id} has no ticket {ticket_id}")
        if ticket.player != player:
            raise OwnershipError(f"Ticket {ticket_id} of game {game.id} is not owned by {player}")
        if ticket.claimed:
            raise AlreadyClaimedError(f"Ticket {ticket_id} of game {game.id} was already claimed")
        result = ticket.result
        if result is None:
            raise NotFoundError(f"Ticket {ticket_id} of game {game.id} has no settlement result")

        if result.prize > 0 and self._payment_sink is not None:
            self._payment_sink.pay(
                player,
                result.prize,
                reason=f"prize:game-{game.id}:ticket-{ticket.ticket_id}",
            )

        now = self._clock.now()
        ticket.claimed = True
        result.claimed = True
        result.claimed_at = now
        game.total_paid_out += result.prize
        self._session.flush()

        self.events.record(
            game,
            "prize_claimed",
            ticket_id=ticket.ticket_id,
            player=player,
            matches=result.matches,
            prize=result.prize,
        )
        return result

    # -------- administration --------
    def pause_game(self, game_id: int) -> Game:
        """Stop ticket sales, moving an ACTIVE game back to WAITING."""
        game = self._load_game(game_id, for_update=True)
        game.require_phase(GamePhase.ACTIVE)
        game.transition_to(GamePhase.WAITING)
        self._session.flush()
        logger.warning(f"Game {game.id} paused with {game.tickets_sold} tickets sold")
        self.events.record(game, "game_paused", tickets_sold=game.tickets_sold)
        return game

    def start_game(self, game_id: int, duration: Optional[Duration] = None) -> Game:
        """Resume a WAITING game.

        When ``duration`` is given the sales window is reset to end that long
        from now; otherwise the current end time is kept.
        """
        game = self._load_game(game_id, for_update=True)
        game.require_phase(GamePhase.WAITING)
        if duration is not None:
            seconds = _seconds(duration, "duration")
            if seconds <= 0:
                raise InvalidConfigError("duration must be greater than zero")
            game.end_time = self._clock.now() + timedelta(seconds=seconds)
        game.transition_to(GamePhase.ACTIVE)
        self._session.flush()
        self.events.record(game, "game_started", end_time=dt_iso(game.end_time))
        return game

    def emergency_reveal(self, game_id: int, numbers: Iterable[int]) -> Game:
        """Settle a stuck SEALED game with operator-supplied numbers.

        See :meth:`SealVault.emergency_reveal` for the timing rule. Settlement
        is identical to a normal reveal; the draw is recorded with source
        ``"emergency"``.
        """
        if self.vault is None:
            raise InvalidConfigError("Delayed reveal is not configured")
        game = self._load_game(game_id, for_update=True)
        game.require_phase(GamePhase.SEALED)

        seal = self.vault.emergency_reveal(
            game,
            numbers,
            escalation_window=timedelta(seconds=self._settings.escalation_window_seconds),
        )
        self.events.record(
            game,
            "emergency_reveal",
            numbers=list(seal.revealed_numbers),
            unlock_time=dt_iso(seal.unlock_time),
        )
        outcome = DrawOutcome(
            game_id=game.id,
            numbers=tuple(seal.revealed_numbers),
            request_id=None,
            seed_hex=None,
            generated_at=ensure_utc(seal.generated_at),
        )
        self._settle(game, outcome, source="emergency")
        return game

    def emergency_withdraw(self, game_id: int, recipient: str) -> int:
        """Move a paused or finished game's withdrawable balance to ``recipient``.

        Returns
        -------
        int
            The amount withdrawn.
        """
        if self._payment_sink is None:
            raise InvalidConfigError("Emergency withdrawal requires a payment sink")
        game = self._load_game(game_id, for_update=True)
        game.require_phase(GamePhase.WAITING, GamePhase.FINISHED)

        amount = self.withdrawable_balance(game.id)
        if amount <= 0:
            return 0
        self._payment_sink.pay(recipient, amount, reason=f"emergency-withdraw:game-{game.id}")
        game.prize_pool -= amount
        self._session.flush()

        logger.warning(f"Emergency withdrawal of {amount} from game {game.id} to {recipient}")
        self.events.record(
            game, "emergency_withdraw", recipient=recipient, amount=amount
        )
        return amount

    # -------- queries --------
    @property
    def clock(self) -> Clock:
        return self._clock

    def get_game(self, game_id: int) -> Game:
        return self._load_game(game_id)

    def list_games(self, phase: Optional[GamePhase] = None) -> list[Game]:
        """Return games in creation order, optionally only those in ``phase``."""
        stmt = select(Game)
        if phase is not None:
            stmt = stmt.where(Game.phase == GamePhase(phase).value)
        return list(self._session.scalars(stmt.order_by(Game.id.asc())).all())

    def current_game_id(self) -> Optional[int]:
        """Return the id of the most recently created game, or ``None``."""
        return Game.latest_id(self._session)

    def get_ticket(self, game_id: int, ticket_id: int) -> Ticket:
        self._load_game(game_id)
        ticket = Ticket.get_in_game(self._session, game_id, ticket_id)
        if ticket is None:
            raise NotFoundError(f"Game {game_id} has no ticket {ticket_id}")
        return ticket

    def get_game_tickets(self, game_id: int) -> list[Ticket]:
        self._load_game(game_id)
        stmt = (
            select(Ticket)
            .where(Ticket.game_id == game_id)
            .order_by(Ticket.ticket_id.asc())
        )
        return list(self._session.scalars(stmt).all())

    def get_game_results(self, game_id: int) -> list[GameResult]:
        """Return the settlement results of a game; empty until it is settled."""
        self._load_game(game_id)
        stmt = (
            select(GameResult)
            .where(GameResult.game_id == game_id)
            .order_by(GameResult.ticket_id.asc())
        )
        return list(self._session.scalars(stmt).all())

    def get_player_tickets(self, player: str, game_id: Optional[int] = None) -> list[Ticket]:
        """Return ``player``'s tickets, optionally limited to one game."""
        stmt = select(Ticket).where(Ticket.player == player)
        if game_id is not None:
            self._load_game(game_id)
            stmt = stmt.where(Ticket.game_id == game_id)
        stmt = stmt.order_by(Ticket.game_id.asc(), Ticket.ticket_id.asc())
        return list(self._session.scalars(stmt).all())

    def get_player_history(self, player: str) -> list[int]:
        """Return the ids of the games ``player`` took part in, oldest first."""
        return PlayerParticipation.game_ids_for(self._session, player)

    def get_draw_result(self, game_id: int) -> Optional[DrawResult]:
        self._load_game(game_id)
        return self._session.scalar(select(DrawResult).where(DrawResult.game_id == game_id))

    def get_game_events(self, game_id: int, event_type: Optional[str] = None) -> list[GameEvent]:
        self._load_game(game_id)
        return self.events.events_for(game_id, event_type)

    def is_game_ready_to_reveal(self, game_id: int) -> bool:
        """Return ``True`` when a SEALED game's unlock time has passed."""
        game = self._load_game(game_id)
        if game.current_phase is not GamePhase.SEALED or self.vault is None:
            return False
        seal = SealedDraw.get_for_game(self._session, game.id)
        return seal is not None and self.vault.is_ready_to_reveal(seal)

    def withdrawable_balance(self, game_id: int) -> int:
        """Pool left after paid and still-claimable prizes, floored at zero."""
        game = self._load_game(game_id)
        outstanding = 0
        if game.current_phase is GamePhase.FINISHED:
            outstanding = sum(r.prize for r in self.get_game_results(game.id) if not r.claimed)
        return max(0, game.prize_pool - game.total_paid_out - outstanding)

    # -------- internals --------
    def _load_game(self, game_id: int, *, for_update: bool = False) -> Game:
        game = self._session.get(Game, game_id, with_for_update=True if for_update else None)
        if game is None:
            raise NotFoundError(f"Game {game_id} does not exist")
        return game

    def _settle(self, game: Game, outcome: DrawOutcome, *, source: str) -> None:
        """Write per-ticket results and the draw record, then finish the game."""
        policy = self._policies.get(game.prize_policy)
        tickets = self.get_game_tickets(game.id)
        prizes = calculate_prizes(
            policy,
            [ticket.numbers for ticket in tickets],
            outcome.numbers,
            game.prize_pool,
        )

        now = self._clock.now()
        for ticket, prize in zip(tickets, prizes):
            game.results.append(
                GameResult(
                    ticket=ticket,
                    ticket_id=ticket.ticket_id,
                    player=ticket.player,
                    matches=prize.matches,
                    prize=prize.prize,
                    claimed=False,
                    settled_at=now,
                )
            )
        game.draw_result = DrawResult(
            numbers=list(outcome.numbers),
            request_id=outcome.request_id,
            seed_hex=outcome.seed_hex,
            source=source,
            generated_at=outcome.generated_at,
        )
        game.winning_numbers = list(outcome.numbers)
        game.numbers_generated = True
        game.transition_to(GamePhase.FINISHED)
        game.finished_at = now
        self._session.flush()

        logger.info(
            f"Game {game.id} settled with {list(outcome.numbers)} "
            f"({len(tickets)} tickets, source={source})"
        )
        self.events.record(
            game,
            "game_finished",
            winning_numbers=list(outcome.numbers),
            source=source,
            winners=sum(1 for prize in prizes if prize.prize > 0),
            total_prizes=sum(prize.prize for prize in prizes),
        )


__all__ = ["GameService"]
