"""Django Unfold admin configuration."""

from django.urls import reverse_lazy
from django.utils.translation import gettext_lazy as _

from .base import SITE_NAME, VERSION

UNFOLD = {
    "SITE_TITLE": f"{SITE_NAME} v{VERSION} Admin",
    "SITE_HEADER": f"{SITE_NAME} v{VERSION} Administration",
    "SITE_URL": "/",
    "SIDEBAR": {
        "show_search": True,
        "show_all_applications": False,
        "navigation": [
            {
                "title": _("Loyalty"),
                "separator": True,
                "items": [
                    {
                        "title": _("Customers"),
                        "icon": "group",
                        "link": reverse_lazy("admin:customers_customer_changelist"),
                    },
                    {
                        "title": _("Transactions"),
                        "icon": "receipt_long",
                        "link": reverse_lazy("admin:customers_transaction_changelist"),
                    },
                ],
            },
            {
                "title": _("Wallet"),
                "separator": True,
                "items": [
                    {
                        "title": _("Issued Passes"),
                        "icon": "wallet",
                        "link": reverse_lazy("admin:wallet_walletpass_changelist"),
                    },
                    {
                        "title": _("Device Registrations"),
                        "icon": "smartphone",
                        "link": reverse_lazy("admin:wallet_walletdeviceregistration_changelist"),
                    },
                ],
            },
        ],
    },
}
