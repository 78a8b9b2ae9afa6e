"""SMTP e-mail notifier with one message template per alert category."""
from __future__ import annotations

import logging
import smtplib
from collections.abc import Sequence
from dataclasses import dataclass
from email.message import EmailMessage

from jinja2 import Environment, select_autoescape

from ..config import EmailConfig
from ..errors import NotifierFailure
from ..models import NotificationCategory, ProductInfo
from .base import Notifier

logger = logging.getLogger(__name__)

_html_env = Environment(autoescape=select_autoescape(default_for_string=True))
_text_env = Environment(autoescape=False)

_SUBJECTS = {
    NotificationCategory.WELCOME: "Welcome to Price Tracking for {title}",
    NotificationCategory.STOCK_CHANGE: "Stock Update for {title}",
    NotificationCategory.LOWEST_PRICE: "Lowest Price Alert for {title}",
    NotificationCategory.THRESHOLD_DROP: "Discount Alert for {title}",
}

_HEADLINES = {
    NotificationCategory.WELCOME: "You are now tracking {{ title }}",
    NotificationCategory.STOCK_CHANGE: "{{ title }} changed stock status",
    NotificationCategory.LOWEST_PRICE: "{{ title }} just hit its lowest price ever",
    NotificationCategory.THRESHOLD_DROP: "{{ title }} dropped in price",
}

_BODIES = {
    NotificationCategory.WELCOME: (
        "We will keep an eye on this product and let you know when it restocks, "
        "reaches a new low or drops sharply in price."
    ),
    NotificationCategory.STOCK_CHANGE: "The stock status of this product has changed. Check it before it is gone.",
    NotificationCategory.LOWEST_PRICE: "This is the lowest price recorded for this product so far.",
    NotificationCategory.THRESHOLD_DROP: "The price fell by more than your alert threshold since the last check.",
}

_HTML_TEMPLATE = _html_env.from_string(
    """<html>
  <body style="font-family: Arial, sans-serif; color: #202124;">
    <h2>{{ headline }}</h2>
    <p>{{ body }}</p>
    <p><a href="{{ url }}">View the product</a></p>
    <p style="font-size: 12px; color: #777;">You receive this e-mail because you subscribed to price alerts for this product.</p>
  </body>
</html>"""
)

_TEXT_TEMPLATE = _text_env.from_string(
    "{{ headline }}\n\n{{ body }}\n\nView the product: {{ url }}\n"
)


@dataclass(slots=True, frozen=True)
class RenderedEmail:
    subject: str
    text: str
    html: str


def render_email(category: NotificationCategory, product: ProductInfo) -> RenderedEmail:
    """Render the subject and bodies for ``category``."""

    if category not in _SUBJECTS:
        raise ValueError(f"No e-mail template for {category.value}")

    # Rendered as plain text; the HTML template escapes it once.
    headline = _text_env.from_string(_HEADLINES[category]).render(title=product.title)
    context = {"body": _BODIES[category], "url": product.identifier}
    return RenderedEmail(
        subject=_SUBJECTS[category].format(title=_shorten(product.title)),
        text=_TEXT_TEMPLATE.render(headline=headline, **context),
        html=_HTML_TEMPLATE.render(headline=headline, **context),
    )


def _shorten(title: str, limit: int = 60) -> str:
    return title if len(title) <= limit else f"{title[: limit - 3]}..."


class EmailNotifier(Notifier):
    """Delivers alerts through an SMTP relay."""

    def __init__(self, config: EmailConfig, timeout: float = 30.0) -> None:
        self._config = config
        self._timeout = timeout

    def send(self, category: NotificationCategory, product: ProductInfo, recipients: Sequence[str]) -> None:
        if not recipients:
            logger.warning("No recipients for %s alert on %s; skipping send", category.value, product.identifier)
            return
        if not self._config.configured:
            raise NotifierFailure("SMTP host or sender address not configured", product.identifier)

        rendered = render_email(category, product)
        message = EmailMessage()
        message["From"] = self._config.sender
        # Subscribers must not see each other's addresses.
        message["To"] = self._config.sender
        message["Bcc"] = ", ".join(recipients)
        message["Subject"] = rendered.subject
        message.set_content(rendered.text)
        message.add_alternative(rendered.html, subtype="html")

        try:
            if self._config.use_ssl:
                server = smtplib.SMTP_SSL(self._config.host, self._config.port, timeout=self._timeout)
            else:
                server = smtplib.SMTP(self._config.host, self._config.port, timeout=self._timeout)
            with server:
                if not self._config.use_ssl:
                    server.starttls()
                if self._config.username:
                    server.login(self._config.username, self._config.password)
                server.send_message(message, from_addr=self._config.sender, to_addrs=list(recipients))
        except (smtplib.SMTPException, OSError) as exc:
            raise NotifierFailure(f"SMTP delivery failed: {exc}", product.identifier) from exc

        logger.info("Sent %s alert for %s to %s recipients", category.value, product.identifier, len(recipients))
