"""Apple Wallet pass generation components."""

from wallet.apple.generator import ApplePassGenerator
from wallet.apple.push import PushNotificationDispatcher
from wallet.apple.signer import ApplePassSigner

__all__ = [
    "ApplePassGenerator",
    "ApplePassSigner",
    "PushNotificationDispatcher",
]
