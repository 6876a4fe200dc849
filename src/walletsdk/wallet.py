"""Offline key generation.

Generates a BIP-39 mnemonic and derives the first Ethereum account from
it. Nothing here touches the network or the session: the result is
handed straight back to the caller, who is responsible for storing it.

Derivation path: m/44'/60'/0'/0/index
"""

import logging
import re

from bip_utils import (
    Bip39MnemonicGenerator,
    Bip39MnemonicValidator,
    Bip39SeedGenerator,
    Bip39WordsNum,
    Bip44,
    Bip44Changes,
    Bip44Coins,
)
from eth_account import Account

from walletsdk.contracts import OfflineWallet
from walletsdk.errors import ErrorKind, WalletError

logger = logging.getLogger(__name__)

_PRIVATE_KEY = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def derivation_path(index: int = 0) -> str:
    return f"m/44'/60'/0'/0/{index}"


def derive_account(mnemonic: str, index: int = 0) -> OfflineWallet:
    """Derive an Ethereum account from a mnemonic phrase.

    Args:
        mnemonic: BIP-39 phrase
        index: Address index on the external chain

    Returns:
        OfflineWallet with the derived address and private key

    Raises:
        WalletError: INVALID_PRIVATE_KEY if the phrase does not validate
    """
    phrase = " ".join(mnemonic.split())
    if not Bip39MnemonicValidator().IsValid(phrase):
        raise WalletError(ErrorKind.INVALID_PRIVATE_KEY, "Invalid mnemonic phrase")

    seed = Bip39SeedGenerator(phrase).Generate()
    bip44 = Bip44.FromSeed(seed, Bip44Coins.ETHEREUM)
    account = bip44.Purpose().Coin().Account(0).Change(Bip44Changes.CHAIN_EXT)
    private_key = "0x" + account.AddressIndex(index).PrivateKey().Raw().ToHex()

    return OfflineWallet(
        address=Account.from_key(private_key).address,
        private_key=private_key,
        mnemonic=phrase,
        derivation_path=derivation_path(index),
    )


def generate_wallet() -> OfflineWallet:
    """Generate a fresh 12-word wallet."""
    mnemonic = str(Bip39MnemonicGenerator().FromWordsNumber(Bip39WordsNum.WORDS_NUM_12))
    wallet = derive_account(mnemonic)
    logger.info(f"Generated offline wallet {wallet.address[:10]}...")
    return wallet


def is_valid_private_key(private_key: str) -> bool:
    """Check whether a string is a usable secp256k1 private key."""
    if not isinstance(private_key, str) or not _PRIVATE_KEY.match(private_key.strip()):
        return False
    try:
        Account.from_key(private_key.strip())
    except Exception:
        return False
    return True


def wallet_from_private_key(private_key: str) -> str:
    """Return the checksummed address controlled by a private key.

    Raises:
        WalletError: INVALID_PRIVATE_KEY
    """
    if not is_valid_private_key(private_key):
        raise WalletError(ErrorKind.INVALID_PRIVATE_KEY, "Invalid private key")
    return Account.from_key(private_key.strip()).address
