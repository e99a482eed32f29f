from __future__ import annotations

import unittest

from trading.errors import ErrorKind, InvalidKeyMaterialError
from wallet.keys import derive_from_private_key, derive_from_seed, looks_like_seed_phrase

SEED = "test test test test test test test test test test test junk"
SEED_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
SEED_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


class WalletKeyTests(unittest.TestCase):
    def test_seed_phrase_derives_default_path(self) -> None:
        wallet = derive_from_seed(SEED)
        self.assertEqual(wallet.address, SEED_ADDRESS)
        self.assertEqual(wallet.private_key, SEED_KEY)

    def test_seed_phrase_whitespace_is_normalized(self) -> None:
        self.assertEqual(derive_from_seed("  " + SEED.replace(" ", "   ") + "\n").address, SEED_ADDRESS)

    def test_private_key_with_or_without_prefix(self) -> None:
        self.assertEqual(derive_from_private_key(SEED_KEY).address, SEED_ADDRESS)
        self.assertEqual(derive_from_private_key(SEED_KEY[2:]).private_key, SEED_KEY)

    def test_malformed_material_raises(self) -> None:
        for bad in ("", "0x1234", "zz" * 32):
            with self.subTest(bad=bad):
                with self.assertRaises(InvalidKeyMaterialError) as ctx:
                    derive_from_private_key(bad)
                self.assertEqual(ctx.exception.kind, ErrorKind.WALLET_CREATION_ERROR)
        with self.assertRaises(InvalidKeyMaterialError):
            derive_from_seed("not a valid mnemonic phrase at all")

    def test_seed_phrase_heuristic(self) -> None:
        self.assertTrue(looks_like_seed_phrase(SEED))
        self.assertFalse(looks_like_seed_phrase(SEED_KEY))


if __name__ == "__main__":
    unittest.main()
