import unittest

from travelbook.errors import Unauthenticated
from travelbook.security import SessionIssuer, hash_password, verify_password


class PasswordHashTests(unittest.TestCase):
    def test_verify_matches_only_hashed_password(self):
        stored = hash_password("pw123", iterations=1000)
        self.assertTrue(stored.startswith("pbkdf2_sha256$1000$"))
        self.assertNotIn("pw123", stored)
        self.assertTrue(verify_password("pw123", stored))
        self.assertFalse(verify_password("pw124", stored))

    def test_salt_differs_per_hash(self):
        self.assertNotEqual(
            hash_password("same", iterations=1000), hash_password("same", iterations=1000)
        )

    def test_garbage_hash_never_verifies(self):
        self.assertFalse(verify_password("pw", "not-a-hash"))
        self.assertFalse(verify_password("pw", "bcrypt$10$zz$zz"))


class SessionIssuerTests(unittest.TestCase):
    def setUp(self):
        self.now = 1_700_000_000.0
        self.issuer = SessionIssuer("secret", ttl_hours=72, clock=lambda: self.now)

    def test_roundtrip(self):
        token = self.issuer.issue("acct-1")
        self.assertEqual(self.issuer.verify(token), "acct-1")

    def test_expired_token_is_rejected(self):
        token = self.issuer.issue("acct-1")
        self.now += 72 * 3600 - 1
        self.assertEqual(self.issuer.verify(token), "acct-1")
        self.now += 1
        with self.assertRaises(Unauthenticated):
            self.issuer.verify(token)

    def test_token_from_other_secret_is_rejected(self):
        other = SessionIssuer("another-secret", clock=lambda: self.now)
        with self.assertRaises(Unauthenticated):
            self.issuer.verify(other.issue("acct-1"))

    def test_malformed_tokens_are_rejected(self):
        for token in ("", "abc", "a.b", "!!!.???"):
            with self.subTest(token=token):
                with self.assertRaises(Unauthenticated):
                    self.issuer.verify(token)

    def test_empty_secret_is_refused(self):
        with self.assertRaises(ValueError):
            SessionIssuer("")


if __name__ == "__main__":
    unittest.main()
