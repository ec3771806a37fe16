"""Unit tests for cadence.core.config validators."""

import unittest

from pydantic import ValidationError

from cadence.core.config import Settings


def _settings(**values: object) -> Settings:
    return Settings(_env_file=None, **values)


class TestDefaults(unittest.TestCase):
    def test_defaults(self) -> None:
        s = _settings()
        self.assertEqual(s.JWT_ALGORITHM, "HS256")
        self.assertEqual(s.JWT_EXPIRE_MINUTES, 7 * 24 * 60)
        self.assertEqual(s.PASSWORD_RESET_EXPIRE_MINUTES, 15)
        self.assertGreaterEqual(s.BCRYPT_ROUNDS, 10)
        self.assertEqual(s.RESET_TOKEN_SWEEP_INTERVAL_SEC, 0)


class TestValidators(unittest.TestCase):
    def test_only_hmac_algorithms(self) -> None:
        self.assertEqual(_settings(JWT_ALGORITHM="hs512").JWT_ALGORITHM, "HS512")
        for alg in ("none", "RS256", "ES256"):
            with self.subTest(alg=alg):
                with self.assertRaises(ValidationError):
                    _settings(JWT_ALGORITHM=alg)

    def test_bcrypt_cost_floor(self) -> None:
        with self.assertRaises(ValidationError):
            _settings(BCRYPT_ROUNDS=9)

    def test_database_url_scheme(self) -> None:
        with self.assertRaises(ValidationError):
            _settings(DATABASE_URL="mysql://root@localhost/db")
        self.assertTrue(
            _settings(DATABASE_URL="postgresql+psycopg2://u:p@db/cadence").DATABASE_URL.startswith("postgresql")
        )

    def test_public_base_url(self) -> None:
        self.assertEqual(
            _settings(PUBLIC_BASE_URL="https://music.example.com/").PUBLIC_BASE_URL,
            "https://music.example.com",
        )
        with self.assertRaises(ValidationError):
            _settings(PUBLIC_BASE_URL="ftp://music.example.com")

    def test_rate_limits(self) -> None:
        s = _settings()
        self.assertEqual((s.RATE_LIMIT_PER_MINUTE, s.AUTH_RATE_LIMIT_PER_MINUTE), (50, 10))
        self.assertEqual(_settings(RATE_LIMIT_PER_MINUTE=0).RATE_LIMIT_PER_MINUTE, 0)
        with self.assertRaises(ValidationError):
            _settings(AUTH_RATE_LIMIT_PER_MINUTE=-1)

    def test_sweep_interval(self) -> None:
        self.assertEqual(_settings(RESET_TOKEN_SWEEP_INTERVAL_SEC=60).RESET_TOKEN_SWEEP_INTERVAL_SEC, 60)
        with self.assertRaises(ValidationError):
            _settings(RESET_TOKEN_SWEEP_INTERVAL_SEC=5)

    def test_api_prefix(self) -> None:
        with self.assertRaises(ValidationError):
            _settings(API_PREFIX="api")
        with self.assertRaises(ValidationError):
            _settings(API_PREFIX="/api/")

    def test_prod_requires_real_secret(self) -> None:
        with self.assertRaises(ValidationError):
            _settings(APP_ENV="prod")
        with self.assertRaises(ValidationError):
            _settings(APP_ENV="prod", JWT_SECRET="too-short")
        s = _settings(APP_ENV="prod", JWT_SECRET="x" * 48)
        self.assertEqual(s.APP_ENV, "prod")


if __name__ == "__main__":
    unittest.main()
