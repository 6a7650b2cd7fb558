import os

from storefront import config  # noqa: F401  (loads .env)


class NotifySettings:
    def __init__(self):
        self.WHATSAPP_ACCESS_TOKEN = (
            os.getenv("WHATSAPP_CLOUD_ACCESS_TOKEN") or os.getenv("WHATSAPP_ACCESS_TOKEN") or ""
        )
        self.WHATSAPP_PHONE_NUMBER_ID = (
            os.getenv("WHATSAPP_CLOUD_PHONE_NUMBER_ID") or os.getenv("WHATSAPP_PHONE_NUMBER_ID") or ""
        )
        self.WHATSAPP_API_VERSION = os.getenv("WHATSAPP_API_VERSION", "v20.0")
        self.WHATSAPP_STATUS_TEMPLATE = os.getenv("WHATSAPP_STATUS_TEMPLATE", "order_status_update")
        self.WHATSAPP_LANGUAGE = os.getenv("WHATSAPP_LANGUAGE", "en")
        self.WHATSAPP_TIMEOUT = float(os.getenv("WHATSAPP_TIMEOUT", "10"))


notify_settings = NotifySettings()
