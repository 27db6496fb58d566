"""Registration and login passphrases."""

from .mnemonic import MnemonicService, RegistrationMnemonic

__all__ = ["MnemonicService", "RegistrationMnemonic"]
