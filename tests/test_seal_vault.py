from __future__ import annotations

import base64
import unittest
from datetime import datetime, timedelta, timezone

from cryptography.fernet import Fernet
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from triplotto.config import GameSettings
from triplotto.draw import DrawOutcome, SealVault
from triplotto.draw.seal import decrypt_payload, encrypt_payload
from triplotto.errors import DecryptionError, NotFoundError, PhaseError
from triplotto.game_service import GameService
from triplotto.models import Base
from triplotto.providers.local import (
    LocalRandomnessProvider,
    LocalTimeLockProvider,
    ManualClock,
)

START = datetime(2025, 3, 1, tzinfo=timezone.utc)


class PayloadCipherTests(unittest.TestCase):
    def test_round_trip_with_issued_key(self) -> None:
        token, key = encrypt_payload(b'{"numbers": [7, 34, 90]}')
        self.assertNotIn(b"numbers", token)
        self.assertEqual(decrypt_payload(token, key), b'{"numbers": [7, 34, 90]}')

    def test_wrong_key_or_tampering_fails(self) -> None:
        token, key = encrypt_payload(b"secret draw")
        self.assertIsNone(decrypt_payload(token, Fernet.generate_key()))
        self.assertIsNone(decrypt_payload(token, key[:16]))
        self.assertIsNone(decrypt_payload(token, b"\x00" * 32))
        raw = bytearray(base64.urlsafe_b64decode(token))
        raw[-40] ^= 0x01
        tampered = base64.urlsafe_b64encode(bytes(raw))
        self.assertIsNone(decrypt_payload(tampered, key))

    def test_each_encryption_uses_a_fresh_key(self) -> None:
        _, first = encrypt_payload(b"same")
        _, second = encrypt_payload(b"same")
        self.assertNotEqual(first, second)


class SealVaultTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )
        self.clock = ManualClock(START)
        self.proofs: list[tuple[str, bytes]] = []
        self.time_lock = LocalTimeLockProvider(
            self.clock, callback=lambda request_id, proof: self.proofs.append((request_id, proof))
        )

    def tearDown(self) -> None:
        self.engine.dispose()

    def _game(self, session):
        service = GameService(
            session,
            LocalRandomnessProvider(),
            settings=GameSettings(),
            clock=self.clock,
        )
        return service.create_game()

    def make_outcome(self, game) -> DrawOutcome:
        return DrawOutcome(
            game_id=game.id,
            numbers=(7, 34, 90),
            request_id="rnd-1",
            seed_hex="ab" * 32,
            generated_at=self.clock.now(),
        )

    def test_seal_then_unseal_with_released_proof(self) -> None:
        with self.Session.begin() as session:
            vault = SealVault(session, self.time_lock, clock=self.clock)
            game = self._game(session)
            seal = vault.seal(game, self.make_outcome(game), timedelta(hours=1))

            self.assertEqual(seal.unlock_time, START + timedelta(hours=1))
            self.assertFalse(seal.revealed)
            self.assertIsNone(seal.revealed_numbers)
            self.assertIs(game.sealed_draw, seal)
            self.assertFalse(vault.is_ready_to_reveal(seal))

            self.clock.advance(hours=1)
            self.assertTrue(vault.is_ready_to_reveal(seal))
            self.time_lock.release(seal.request_id)
            request_id, proof = self.proofs[0]
            self.assertEqual(request_id, seal.request_id)

            result = vault.unseal(request_id, proof)
            self.assertTrue(result.ok)
            self.assertEqual(result.outcome.numbers, (7, 34, 90))
            self.assertEqual(result.outcome.seed_hex, "ab" * 32)
            self.assertEqual(result.outcome.request_id, "rnd-1")
            self.assertTrue(seal.revealed)
            self.assertFalse(vault.is_ready_to_reveal(seal))

    def test_text_proof_is_accepted(self) -> None:
        with self.Session.begin() as session:
            vault = SealVault(session, self.time_lock, clock=self.clock)
            game = self._game(session)
            seal = vault.seal(game, self.make_outcome(game), timedelta(seconds=10))
            self.clock.advance(seconds=10)
            self.time_lock.release(seal.request_id)
            _, proof = self.proofs[0]
            self.assertTrue(vault.unseal(seal.request_id, proof.decode("ascii")).ok)

    def test_bad_proof_returns_failure_and_keeps_seal_closed(self) -> None:
        with self.Session.begin() as session:
            vault = SealVault(session, self.time_lock, clock=self.clock)
            game = self._game(session)
            seal = vault.seal(game, self.make_outcome(game), timedelta(seconds=10))

            bad_proofs = (Fernet.generate_key(), b"\x00" * 32, "not a key", "caf\u00e9", None, b"short")
            for proof in bad_proofs:
                with self.subTest(proof=proof):
                    result = vault.unseal(seal.request_id, proof)
                    self.assertFalse(result.ok)
                    self.assertIsInstance(result.error, DecryptionError)
                    self.assertIsNone(result.outcome)
            self.assertEqual(seal.failed_attempts, 6)
            self.assertFalse(seal.revealed)

    def test_revealed_seal_answers_from_cache(self) -> None:
        with self.Session.begin() as session:
            vault = SealVault(session, self.time_lock, clock=self.clock)
            game = self._game(session)
            seal = vault.seal(game, self.make_outcome(game), timedelta(seconds=10))
            self.clock.advance(seconds=10)
            self.time_lock.release(seal.request_id)
            _, proof = self.proofs[0]
            vault.unseal(seal.request_id, proof)

            again = vault.unseal(seal.request_id, b"anything")
            self.assertTrue(again.ok)
            self.assertEqual(again.outcome.numbers, (7, 34, 90))
            self.assertEqual(seal.failed_attempts, 0)

    def test_double_seal_and_unknown_request(self) -> None:
        with self.Session.begin() as session:
            vault = SealVault(session, self.time_lock, clock=self.clock)
            game = self._game(session)
            vault.seal(game, self.make_outcome(game), timedelta(seconds=10))
            with self.assertRaises(PhaseError):
                vault.seal(game, self.make_outcome(game), timedelta(seconds=10))
            with self.assertRaises(NotFoundError):
                vault.unseal("unlock-missing", b"\x00" * 32)


if __name__ == "__main__":
    unittest.main()
