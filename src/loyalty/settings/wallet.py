"""Apple Wallet Pass Configuration.

See: https://developer.apple.com/documentation/walletpasses
"""

from decouple import config

from .base import SITE_NAME

# Signing identity
APPLE_WALLET_PASS_TYPE_ID: str = config("APPLE_WALLET_PASS_TYPE_ID", default="")
APPLE_WALLET_TEAM_ID: str = config("APPLE_WALLET_TEAM_ID", default="")
APPLE_WALLET_CERT_PATH: str = config("APPLE_WALLET_CERT_PATH", default="")
APPLE_WALLET_KEY_PATH: str = config("APPLE_WALLET_KEY_PATH", default="")
APPLE_WALLET_KEY_PASSWORD: str = config("APPLE_WALLET_KEY_PASSWORD", default="")
APPLE_WALLET_WWDR_CERT_PATH: str = config("APPLE_WALLET_WWDR_CERT_PATH", default="")

# Pass content
APPLE_WALLET_ORGANIZATION_NAME: str = config("APPLE_WALLET_ORGANIZATION_NAME", default=SITE_NAME)
APPLE_WALLET_DESCRIPTION: str = config("APPLE_WALLET_DESCRIPTION", default=f"{SITE_NAME} Digital Loyalty Card")
APPLE_WALLET_LOGO_TEXT: str = config("APPLE_WALLET_LOGO_TEXT", default=f"{SITE_NAME} Club")
APPLE_WALLET_BARCODE_URL: str = config("APPLE_WALLET_BARCODE_URL", default="https://loy.com/card/{customer_id}")
APPLE_WALLET_ASSETS_DIR: str = config("APPLE_WALLET_ASSETS_DIR", default="")

# Web service protocol credentials
APPLE_WALLET_WEB_SERVICE_TOKEN: str = config("APPLE_WALLET_WEB_SERVICE_TOKEN", default=APPLE_WALLET_PASS_TYPE_ID)
APPLE_WALLET_ACCEPT_PASS_TOKENS: bool = config("APPLE_WALLET_ACCEPT_PASS_TOKENS", default=False, cast=bool)
# Empty means "derive from SECRET_KEY"
WALLET_AUTH_SECRET: str = config("WALLET_AUTH_SECRET", default="")

# External tool bounds (seconds)
APPLE_WALLET_OPENSSL_BINARY: str = config("APPLE_WALLET_OPENSSL_BINARY", default="openssl")
APPLE_WALLET_SIGNING_TIMEOUT: float = config("APPLE_WALLET_SIGNING_TIMEOUT", default=30.0, cast=float)
APPLE_WALLET_ARCHIVE_TIMEOUT: float = config("APPLE_WALLET_ARCHIVE_TIMEOUT", default=15.0, cast=float)
APPLE_WALLET_STAGING_DIR: str = config("APPLE_WALLET_STAGING_DIR", default="")

# Push notifications
APPLE_WALLET_APNS_USE_SANDBOX: bool = config("APPLE_WALLET_APNS_USE_SANDBOX", default=False, cast=bool)

# Load and validate the signing identity when the app registry is ready
APPLE_WALLET_VALIDATE_ON_STARTUP: bool = config("APPLE_WALLET_VALIDATE_ON_STARTUP", default=True, cast=bool)
