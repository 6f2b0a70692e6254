from __future__ import annotations

import unittest

from triplotto.draw import (
    count_matches,
    derive_winning_numbers,
    normalize_seed,
    validate_ticket_numbers,
)
from triplotto.errors import DrawExhaustedError, ValidationError


class WinningNumberDerivationTests(unittest.TestCase):
    def test_same_seed_yields_same_sorted_triple(self) -> None:
        seed = bytes(range(32))
        first = derive_winning_numbers(seed)
        second = derive_winning_numbers(seed)
        self.assertEqual(first, second)
        self.assertEqual(list(first), sorted(first))
        self.assertEqual(len(set(first)), 3)
        for number in first:
            self.assertGreaterEqual(number, 1)
            self.assertLessEqual(number, 100)

    def test_equivalent_seed_encodings_agree(self) -> None:
        raw = (123456789).to_bytes(32, "big")
        from_bytes = derive_winning_numbers(raw)
        self.assertEqual(derive_winning_numbers(123456789), from_bytes)
        self.assertEqual(derive_winning_numbers(raw.hex()), from_bytes)
        self.assertEqual(derive_winning_numbers("0x" + raw.hex()), from_bytes)

    def test_many_seeds_respect_range_and_uniqueness(self) -> None:
        for value in range(200):
            numbers = derive_winning_numbers(value)
            self.assertEqual(len(numbers), 3)
            self.assertEqual(len(set(numbers)), 3)
            self.assertTrue(all(1 <= n <= 100 for n in numbers))
            self.assertEqual(list(numbers), sorted(numbers))

    def test_small_pool_forces_collision_retries(self) -> None:
        numbers = derive_winning_numbers(b"\x01" * 32, count=3, low=1, high=3)
        self.assertEqual(numbers, (1, 2, 3))

    def test_impossible_draw_is_exhausted(self) -> None:
        with self.assertRaises(DrawExhaustedError):
            derive_winning_numbers(b"\x02" * 32, count=3, low=1, high=2, max_attempts=50)

    def test_invalid_bounds_raise(self) -> None:
        with self.assertRaises(ValueError):
            derive_winning_numbers(b"seed", low=10, high=1)
        with self.assertRaises(ValueError):
            derive_winning_numbers(b"seed", count=0)


class SeedNormalizationTests(unittest.TestCase):
    def test_int_seed_is_padded_to_32_bytes(self) -> None:
        self.assertEqual(normalize_seed(1), b"\x00" * 31 + b"\x01")

    def test_hex_string_with_prefix(self) -> None:
        self.assertEqual(normalize_seed(" 0xABCD "), b"\xab\xcd")

    def test_rejects_bad_seeds(self) -> None:
        with self.assertRaises(ValueError):
            normalize_seed(b"")
        with self.assertRaises(ValueError):
            normalize_seed(-1)
        with self.assertRaises(ValueError):
            normalize_seed("not-hex")
        with self.assertRaises(TypeError):
            normalize_seed(True)  # type: ignore[arg-type]
        with self.assertRaises(TypeError):
            normalize_seed(1.5)  # type: ignore[arg-type]


class TicketNumberTests(unittest.TestCase):
    def test_valid_numbers_are_sorted(self) -> None:
        self.assertEqual(validate_ticket_numbers([45, 7, 23]), (7, 23, 45))
        self.assertEqual(validate_ticket_numbers((1, 100, 50)), (1, 50, 100))

    def test_invalid_numbers_raise(self) -> None:
        invalid = [
            [1, 2],
            [1, 2, 3, 4],
            [0, 2, 3],
            [1, 2, 101],
            [5, 5, 6],
            [1, 2, "3"],
            [1, 2, 3.0],
            [True, 2, 3],
            "123",
            None,
        ]
        for numbers in invalid:
            with self.subTest(numbers=numbers):
                with self.assertRaises(ValidationError):
                    validate_ticket_numbers(numbers)  # type: ignore[arg-type]

    def test_validation_error_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            validate_ticket_numbers([1, 1, 1])

    def test_count_matches(self) -> None:
        winning = (7, 34, 90)
        self.assertEqual(count_matches([7, 23, 45], winning), 1)
        self.assertEqual(count_matches([12, 34, 56], winning), 1)
        self.assertEqual(count_matches([7, 34, 56], winning), 2)
        self.assertEqual(count_matches([90, 7, 34], winning), 3)
        self.assertEqual(count_matches([1, 2, 3], winning), 0)


if __name__ == "__main__":
    unittest.main()
