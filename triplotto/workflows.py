"""Periodic jobs that drive games forward without a player action."""

from typing import TYPE_CHECKING

from .db.utils import ensure_utc
from .models import GamePhase

if TYPE_CHECKING:
    from .game_service import GameService
    from .providers.api import BeaconClient


def end_due_games(service: "GameService") -> dict[int, str]:
    """End every ACTIVE game whose sales window has closed.

    Parameters
    ----------
    service : GameService
        Service bound to the caller's session.

    Returns
    -------
    dict[int, str]
        Randomness request id issued for each ended game, keyed by game id.
    """
    now = service.clock.now()
    requests: dict[int, str] = {}
    for game in service.list_games(GamePhase.ACTIVE):
        if ensure_utc(game.end_time) <= now:
            requests[game.id] = service.end_game(game.id)
    return requests


def poll_beacon_requests(service: "GameService", client: "BeaconClient") -> list[int]:
    """Deliver fulfilled beacon seeds to games that are still DRAWING.

    Used when the beacon cannot call back into the service. Requests that are
    not fulfilled yet are left for the next poll.

    Returns
    -------
    list[int]
        Ids of the games that received their seed.
    """
    delivered: list[int] = []
    for game in service.list_games(GamePhase.DRAWING):
        request_id = game.pending_request_id
        if not request_id:
            continue
        seed = client.fetch_seed(request_id)
        if seed is None:
            continue
        if service.on_random_seed_received(request_id, seed) is not None:
            delivered.append(game.id)
    return delivered


__all__ = ["end_due_games", "poll_beacon_requests"]
