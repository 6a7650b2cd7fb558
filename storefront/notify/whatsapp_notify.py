import logging
from typing import List, Optional

import requests

from storefront.notify.config_notify import NotifySettings
from storefront.utils.enums import STATUS_LABELS, OrderStatus

logger = logging.getLogger(__name__)


class WhatsAppNotifier:
    """Template messages to customers through the WhatsApp Cloud API.

    Fire-and-forget: every failure is logged and swallowed so a status
    change never depends on the messaging channel.
    """

    def __init__(self, access_token: str, phone_number_id: str, api_version: str = "v20.0",
                 template_name: str = "order_status_update", language: str = "en",
                 timeout: float = 10):
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.template_name = template_name
        self.language = "en_US" if language == "en" else language
        self.timeout = timeout
        self.api_url = f"https://graph.facebook.com/{api_version}/{phone_number_id}/messages"

    @classmethod
    def from_settings(cls, settings: NotifySettings) -> "WhatsAppNotifier":
        return cls(
            access_token=settings.WHATSAPP_ACCESS_TOKEN,
            phone_number_id=settings.WHATSAPP_PHONE_NUMBER_ID,
            api_version=settings.WHATSAPP_API_VERSION,
            template_name=settings.WHATSAPP_STATUS_TEMPLATE,
            language=settings.WHATSAPP_LANGUAGE,
            timeout=settings.WHATSAPP_TIMEOUT,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.access_token and self.phone_number_id)

    def build_payload(self, to: str, body_parameters: List[str],
                      template_name: Optional[str] = None) -> dict:
        template = {
            "name": template_name or self.template_name,
            "language": {"code": self.language},
        }
        if body_parameters:
            template["components"] = [{
                "type": "body",
                "parameters": [{"type": "text", "text": str(p)} for p in body_parameters],
            }]
        return {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "template",
            "template": template,
        }

    def send(self, to: str, body_parameters: List[str], template_name: Optional[str] = None) -> bool:
        """Send one template message; returns False instead of raising."""
        if not self.enabled:
            logger.debug("whatsapp notifier disabled, skipping message to %s", to)
            return False
        if not to:
            logger.debug("no recipient phone, skipping message")
            return False

        try:
            resp = requests.post(
                self.api_url,
                json=self.build_payload(to, body_parameters, template_name),
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("whatsapp request to %s failed: %s", to, e)
            return False

        if not resp.ok:
            try:
                data = resp.json()
            except ValueError:
                data = {}
            err = (data.get("error") or {}).get("message") or resp.reason
            logger.warning("whatsapp API error (%s) for %s: %s", resp.status_code, to, err)
            return False
        return True

    def notify_order_status_changed(self, order) -> bool:
        """Tell the customer about the order's new status."""
        try:
            label = STATUS_LABELS.get(OrderStatus(order.status), order.status)
        except ValueError:
            label = order.status
        try:
            return self.send(order.customer_phone, [order.id, label])
        except Exception:
            # notifications never break a committed transition
            logger.exception("unexpected error notifying order %s", order.id)
            return False
