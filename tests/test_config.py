import os
import unittest
from unittest.mock import patch

from triplotto.config import GameSettings, load_settings
from triplotto.errors import InvalidConfigError


@patch("triplotto.config.load_dotenv")
class TestLoadSettings(unittest.TestCase):
    def test_defaults_without_environment(self, mock_load_dotenv):
        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings()
        self.assertEqual(settings, GameSettings())
        mock_load_dotenv.assert_called_once()

    def test_environment_overrides(self, mock_load_dotenv):
        env = {
            "LOTTERY_TICKET_PRICE": "25",
            "LOTTERY_MAX_TICKETS": "500",
            "LOTTERY_DURATION_SECONDS": "7200",
            "LOTTERY_REVEAL_DELAY_SECONDS": "3600",
            "LOTTERY_ESCALATION_WINDOW_SECONDS": "60",
            "LOTTERY_CALLBACK_BUDGET": "100000",
            "LOTTERY_PRIZE_POLICY": "pool_percentage",
            "LOTTERY_MAX_DRAW_ATTEMPTS": "50",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = load_settings()
        self.assertEqual(settings.ticket_price, 25)
        self.assertEqual(settings.max_tickets, 500)
        self.assertEqual(settings.duration_seconds, 7200)
        self.assertEqual(settings.reveal_delay_seconds, 3600)
        self.assertEqual(settings.escalation_window_seconds, 60)
        self.assertEqual(settings.callback_budget, 100000)
        self.assertEqual(settings.prize_policy, "pool_percentage")
        self.assertEqual(settings.max_draw_attempts, 50)

    def test_non_positive_reveal_delay_disables_sealing(self, mock_load_dotenv):
        with patch.dict(os.environ, {"LOTTERY_REVEAL_DELAY_SECONDS": "0"}, clear=True):
            self.assertIsNone(load_settings().reveal_delay_seconds)

    def test_malformed_integer_raises(self, mock_load_dotenv):
        with patch.dict(os.environ, {"LOTTERY_MAX_TICKETS": "lots"}, clear=True):
            with self.assertRaises(InvalidConfigError):
                load_settings()


if __name__ == "__main__":
    unittest.main()
