"""
Unit tests for configuration loading
"""

import unittest

from config import DEFAULT_HOLDING_PROFESSIONAL_ID, DEFAULT_TIME_GRID, POLICY_POOLED, BookingConfig, load_config


class TestConfig(unittest.TestCase):

    def test_defaults(self):
        config = load_config({})
        self.assertEqual(config.holding_professional_id, DEFAULT_HOLDING_PROFESSIONAL_ID)
        self.assertEqual(config.time_grid, DEFAULT_TIME_GRID)
        self.assertEqual(config.fallback_duration_min, 60)
        self.assertTrue(config.redirect_to_holding)
        self.assertFalse(config.expose_error_details)
        self.assertEqual(config.cors_origins, ("*",))

    def test_environment_overrides(self):
        config = load_config({
            "SUPABASE_URL": "https://x.supabase.co",
            "SUPABASE_KEY": "anon",
            "TIME_GRID": "14:00, 8:00,08:30,14:00",
            "AVAILABILITY_POLICY": "Pooled",
            "REDIRECT_TO_HOLDING": "false",
            "EXPOSE_ERROR_DETAILS": "1",
            "FALLBACK_DURATION_MIN": "30",
            "CORS_ORIGINS": "https://painel.example.com",
        })
        self.assertEqual(config.supabase_key, "anon")
        self.assertEqual(config.time_grid, ("08:00", "08:30", "14:00"))
        self.assertEqual(config.availability_policy, POLICY_POOLED)
        self.assertFalse(config.redirect_to_holding)
        self.assertTrue(config.expose_error_details)
        self.assertEqual(config.fallback_duration_min, 30)
        self.assertEqual(config.cors_origins, ("https://painel.example.com",))

    def test_service_role_key_wins(self):
        config = load_config({"SUPABASE_SERVICE_ROLE_KEY": "service", "SUPABASE_KEY": "anon"})
        self.assertEqual(config.supabase_key, "service")

    def test_invalid_values(self):
        with self.assertRaises(ValueError):
            BookingConfig(availability_policy="random")
        with self.assertRaises(ValueError):
            BookingConfig(fallback_duration_min=0)
        with self.assertRaises(ValueError):
            BookingConfig(time_grid=("08:00", "meio-dia"))
        with self.assertRaises(ValueError):
            BookingConfig(timezone="America/Atlantida")
        with self.assertRaises(ValueError):
            load_config({"CLINIC_TIMEZONE": "Mars/Olympus"})

    def test_is_immutable(self):
        config = BookingConfig()
        with self.assertRaises(AttributeError):
            config.fallback_duration_min = 10


if __name__ == '__main__':
    unittest.main(verbosity=2)
