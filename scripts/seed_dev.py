import logging

from triplotto.config import GameSettings
from triplotto.db.engine import get_sessionmaker, make_engine
from triplotto.game_service import GameService
from triplotto.models import Base
from triplotto.providers.local import (
    LocalRandomnessProvider,
    LocalTimeLockProvider,
    ManualClock,
    RecordingPaymentSink,
)


def main() -> None:
    """Seed the development database with one settled and one sealed game."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    engine = make_engine()

    # Drop and recreate all tables for a clean development database.
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        conn.commit()

    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    clock = ManualClock()
    randomness = LocalRandomnessProvider()
    time_lock = LocalTimeLockProvider(clock)
    payments = RecordingPaymentSink()
    settings = GameSettings(ticket_price=10, max_tickets=50, duration_seconds=600)

    with Session.begin() as session:
        service = GameService(
            session,
            randomness,
            settings=settings,
            time_lock=time_lock,
            clock=clock,
            payment_sink=payments,
        )
        randomness.bind(service.on_random_seed_received)
        time_lock.bind(service.on_unlock_signal_received)

        # Game settled straight after the draw
        game = service.create_game()
        service.purchase_ticket(game.id, "alice", [7, 34, 90], 10)
        service.purchase_ticket(game.id, "bob", [1, 2, 3], 10)
        service.purchase_ticket(game.id, "carol", [7, 50, 90], 10)
        clock.advance(seconds=settings.duration_seconds)
        request_id = service.end_game(game.id)
        randomness.fulfill(request_id)
        for result in service.get_game_results(game.id):
            if result.prize > 0:
                service.claim_prize(game.id, result.ticket_id, result.player)

        # Game whose draw stays sealed for an hour
        sealed = service.create_game(prize_policy="pool_percentage", reveal_delay=3600)
        service.purchase_ticket(sealed.id, "alice", [11, 22, 33], 10)
        service.purchase_ticket(sealed.id, "dave", [44, 55, 66], 10)
        clock.advance(seconds=settings.duration_seconds)
        randomness.fulfill(service.end_game(sealed.id))

        print("Settled game:", service.get_game(game.id).to_json())
        print("Sealed game:", service.get_game(sealed.id).to_json())
        print("Payments:", payments.payments)


if __name__ == "__main__":
    main()
