"""One-time 24-word passphrases for registration and login."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Iterable

from mnemonic import Mnemonic

logger = logging.getLogger(__name__)

REQUIRED_WORD_COUNT = 24
# BIP39: 256 bits of entropy encode to 24 words.
_ENTROPY_BITS = 256


@dataclass(frozen=True, slots=True)
class RegistrationMnemonic:
    words: tuple[str, ...]

    @classmethod
    def create(cls, words: Iterable[str]) -> "RegistrationMnemonic":
        words = tuple(words)
        if len(words) != REQUIRED_WORD_COUNT:
            raise ValueError(f"Mnemonic must contain exactly {REQUIRED_WORD_COUNT} words")
        if any(not word or not word.strip() for word in words):
            raise ValueError("Mnemonic cannot contain empty words")
        return cls(words=words)

    @classmethod
    def parse(cls, text: str | None) -> "RegistrationMnemonic":
        """Parse a phrase, ignoring leading, trailing and repeated whitespace."""

        if text is None or not text.strip():
            raise ValueError("Mnemonic string cannot be null or empty")
        return cls.create(text.split())

    def __str__(self) -> str:
        return " ".join(self.words)


def _bip39_phrase() -> str:
    return Mnemonic("english").generate(strength=_ENTROPY_BITS)


class MnemonicService:
    """Issue passphrases and consume each stored instance at most once.

    Pending phrases form a multiset: storing the same phrase twice allows two
    successful consumptions.
    """

    def __init__(self, generator: Callable[[], str] | None = None) -> None:
        self._generator = generator or _bip39_phrase
        self._pending: Counter[str] = Counter()
        self._lock = threading.Lock()

    def generate(self) -> RegistrationMnemonic:
        return RegistrationMnemonic.parse(self._generator())

    def store_pending(self, mnemonic: RegistrationMnemonic) -> None:
        with self._lock:
            self._pending[str(mnemonic)] += 1

    def issue(self) -> RegistrationMnemonic:
        """Generate a passphrase and store it as pending."""

        mnemonic = self.generate()
        self.store_pending(mnemonic)
        logger.info("Issued registration mnemonic", extra={"pending": self.pending_count})
        return mnemonic

    @staticmethod
    def _normalize(candidate: str | None) -> str | None:
        try:
            return str(RegistrationMnemonic.parse(candidate))
        except ValueError:
            return None

    def is_pending(self, candidate: str | None) -> bool:
        key = self._normalize(candidate)
        if key is None:
            return False
        with self._lock:
            return self._pending[key] > 0

    def validate_and_consume(self, candidate: str | None) -> bool:
        key = self._normalize(candidate)
        if key is None:
            return False
        with self._lock:
            if self._pending[key] <= 0:
                return False
            self._pending[key] -= 1
            if not self._pending[key]:
                del self._pending[key]
        return True

    @property
    def pending_count(self) -> int:
        with self._lock:
            return sum(self._pending.values())


__all__ = ["MnemonicService", "REQUIRED_WORD_COUNT", "RegistrationMnemonic"]
