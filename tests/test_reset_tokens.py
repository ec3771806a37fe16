"""Unit tests for cadence.services.reset_tokens: issue, validate, consume, expiry."""

import threading
import unittest
from datetime import timedelta

from cadence.services.reset_tokens import (
    InMemoryResetTokenStore,
    ResetTokenExpired,
    ResetTokenNotFound,
)
from tests.helpers import FakeClock


class TestIssueAndValidate(unittest.TestCase):
    """Tokens resolve to their email for fifteen minutes without being consumed."""

    def setUp(self) -> None:
        self.clock = FakeClock()
        self.store = InMemoryResetTokenStore(clock=self.clock)

    def test_token_is_url_safe_and_long(self) -> None:
        token = self.store.issue("alice@x.com")
        # 32 random bytes encode to 43 URL-safe characters.
        self.assertGreaterEqual(len(token), 43)
        self.assertRegex(token, r"^[A-Za-z0-9_\-]+$")

    def test_tokens_are_unique(self) -> None:
        tokens = {self.store.issue(f"user{i}@x.com") for i in range(50)}
        self.assertEqual(len(tokens), 50)

    def test_validate_returns_email_and_does_not_consume(self) -> None:
        token = self.store.issue("alice@x.com")
        self.assertEqual(self.store.validate(token), "alice@x.com")
        self.assertEqual(self.store.validate(token), "alice@x.com")

    def test_valid_until_fifteen_minutes(self) -> None:
        token = self.store.issue("alice@x.com")
        self.clock.advance(minutes=14, seconds=59)
        self.assertEqual(self.store.validate(token), "alice@x.com")

    def test_unrelated_token_is_not_found(self) -> None:
        self.store.issue("alice@x.com")
        with self.assertRaises(ResetTokenNotFound):
            self.store.validate("definitely-not-issued")

    def test_empty_token_is_not_found(self) -> None:
        with self.assertRaises(ResetTokenNotFound):
            self.store.validate("")


class TestExpiry(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.store = InMemoryResetTokenStore(clock=self.clock)

    def test_expired_token_fails_and_is_purged(self) -> None:
        token = self.store.issue("alice@x.com")
        self.clock.advance(minutes=15)
        with self.assertRaises(ResetTokenExpired):
            self.store.validate(token)
        self.assertEqual(len(self.store), 0)
        with self.assertRaises(ResetTokenNotFound):
            self.store.validate(token)

    def test_custom_ttl(self) -> None:
        store = InMemoryResetTokenStore(ttl=timedelta(minutes=1), clock=self.clock)
        token = store.issue("alice@x.com")
        self.clock.advance(minutes=2)
        with self.assertRaises(ResetTokenExpired):
            store.validate(token)

    def test_purge_expired_removes_only_expired(self) -> None:
        self.store.issue("old@x.com")
        self.clock.advance(minutes=10)
        fresh = self.store.issue("new@x.com")
        self.clock.advance(minutes=6)
        self.assertEqual(self.store.purge_expired(), 1)
        self.assertEqual(len(self.store), 1)
        self.assertEqual(self.store.validate(fresh), "new@x.com")


class TestConsumeAndReissue(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.store = InMemoryResetTokenStore(clock=self.clock)

    def test_consume_returns_record_and_invalidates_token(self) -> None:
        token = self.store.issue("alice@x.com")
        record = self.store.consume("alice@x.com", token)
        self.assertEqual(record.email, "alice@x.com")
        with self.assertRaises(ResetTokenNotFound):
            self.store.validate(token)
        with self.assertRaises(ResetTokenNotFound):
            self.store.consume("alice@x.com", token)

    def test_consume_requires_matching_token(self) -> None:
        token = self.store.issue("alice@x.com")
        with self.assertRaises(ResetTokenNotFound):
            self.store.consume("alice@x.com", "some-other-token")
        with self.assertRaises(ResetTokenNotFound):
            self.store.consume("bob@x.com", token)
        self.assertEqual(self.store.validate(token), "alice@x.com")

    def test_consume_expired_token(self) -> None:
        token = self.store.issue("alice@x.com")
        self.clock.advance(minutes=15)
        with self.assertRaises(ResetTokenExpired):
            self.store.consume("alice@x.com", token)
        self.assertEqual(len(self.store), 0)

    def test_restore_makes_token_usable_again(self) -> None:
        token = self.store.issue("alice@x.com")
        record = self.store.consume("alice@x.com", token)
        self.assertTrue(self.store.restore(record))
        self.assertEqual(self.store.validate(token), "alice@x.com")

    def test_restore_does_not_replace_newer_token(self) -> None:
        old = self.store.issue("alice@x.com")
        record = self.store.consume("alice@x.com", old)
        newer = self.store.issue("alice@x.com")
        self.assertFalse(self.store.restore(record))
        self.assertEqual(self.store.validate(newer), "alice@x.com")
        with self.assertRaises(ResetTokenNotFound):
            self.store.validate(old)

    def test_restore_skips_expired_record(self) -> None:
        record = self.store.consume("alice@x.com", self.store.issue("alice@x.com"))
        self.clock.advance(minutes=16)
        self.assertFalse(self.store.restore(record))
        self.assertEqual(len(self.store), 0)

    def test_reissue_replaces_previous_token(self) -> None:
        first = self.store.issue("alice@x.com")
        second = self.store.issue("alice@x.com")
        self.assertEqual(self.store.validate(second), "alice@x.com")
        with self.assertRaises(ResetTokenNotFound):
            self.store.validate(first)
        self.assertEqual(len(self.store), 1)

    def test_tokens_for_other_emails_are_independent(self) -> None:
        alice = self.store.issue("alice@x.com")
        bob = self.store.issue("bob@x.com")
        self.store.consume("alice@x.com", alice)
        self.assertEqual(self.store.validate(bob), "bob@x.com")
        with self.assertRaises(ResetTokenNotFound):
            self.store.validate(alice)


class TestConcurrentAccess(unittest.TestCase):
    """Parallel issue/validate/consume calls leave the store consistent."""

    def test_parallel_issue_and_validate(self) -> None:
        store = InMemoryResetTokenStore(clock=FakeClock())
        errors: list[Exception] = []
        barrier = threading.Barrier(16)

        def worker(i: int) -> None:
            email = f"user{i}@x.com"
            try:
                barrier.wait()
                for _ in range(50):
                    token = store.issue(email)
                    if store.validate(token) != email:
                        raise AssertionError("token resolved to the wrong email")
                store.consume(email, token)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(store), 0)

    def test_one_token_is_consumed_once(self) -> None:
        store = InMemoryResetTokenStore(clock=FakeClock())
        token = store.issue("alice@x.com")
        claimed: list[str] = []
        refused: list[Exception] = []
        barrier = threading.Barrier(16)

        def worker() -> None:
            barrier.wait()
            try:
                claimed.append(store.consume("alice@x.com", token).email)
            except ResetTokenNotFound as e:
                refused.append(e)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(claimed, ["alice@x.com"])
        self.assertEqual(len(refused), 15)


if __name__ == "__main__":
    unittest.main()
