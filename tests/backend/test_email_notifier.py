from __future__ import annotations

import smtplib
from email.message import EmailMessage

import pytest

from pricewise.config import EmailConfig
from pricewise.errors import NotifierFailure
from pricewise.models import NotificationCategory, ProductInfo
from pricewise.notifications.email_notifier import EmailNotifier, render_email

PRODUCT = ProductInfo(title="Espresso Machine <Deluxe>", identifier="https://www.amazon.com/dp/B000000001")


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host: str, port: int, timeout: float) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.logged_in: tuple[str, str] | None = None
        self.messages: list[tuple[EmailMessage, str, list[str]]] = []
        FakeSMTP.instances.append(self)

    def __enter__(self) -> "FakeSMTP":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def starttls(self) -> None:
        self.started_tls = True

    def login(self, user: str, password: str) -> None:
        self.logged_in = (user, password)

    def send_message(self, message: EmailMessage, from_addr: str, to_addrs: list[str]) -> None:
        self.messages.append((message, from_addr, to_addrs))


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch: pytest.MonkeyPatch) -> type[FakeSMTP]:
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def _config(**overrides) -> EmailConfig:
    values = {"host": "smtp.example.com", "port": 587, "username": "bot", "password": "secret", "sender": "alerts@example.com"}
    values.update(overrides)
    return EmailConfig(**values)


def test_send_delivers_one_message_to_all_recipients(fake_smtp: type[FakeSMTP]) -> None:
    notifier = EmailNotifier(_config())

    notifier.send(NotificationCategory.LOWEST_PRICE, PRODUCT, ["a@example.com", "b@example.com"])

    (server,) = fake_smtp.instances
    assert server.host == "smtp.example.com"
    assert server.started_tls is True
    assert server.logged_in == ("bot", "secret")
    message, from_addr, to_addrs = server.messages[0]
    assert from_addr == "alerts@example.com"
    assert to_addrs == ["a@example.com", "b@example.com"]
    assert message["Subject"] == "Lowest Price Alert for Espresso Machine <Deluxe>"


def test_missing_configuration_raises_notifier_failure() -> None:
    notifier = EmailNotifier(EmailConfig())

    with pytest.raises(NotifierFailure):
        notifier.send(NotificationCategory.STOCK_CHANGE, PRODUCT, ["a@example.com"])


def test_smtp_errors_raise_notifier_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    class RefusingSMTP(FakeSMTP):
        def send_message(self, message, from_addr, to_addrs) -> None:
            raise smtplib.SMTPRecipientsRefused({})

    monkeypatch.setattr(smtplib, "SMTP", RefusingSMTP)
    notifier = EmailNotifier(_config())

    with pytest.raises(NotifierFailure):
        notifier.send(NotificationCategory.THRESHOLD_DROP, PRODUCT, ["a@example.com"])


def test_no_recipients_sends_nothing(fake_smtp: type[FakeSMTP]) -> None:
    EmailNotifier(_config()).send(NotificationCategory.LOWEST_PRICE, PRODUCT, [])

    assert fake_smtp.instances == []


@pytest.mark.parametrize(
    "category",
    [
        NotificationCategory.WELCOME,
        NotificationCategory.STOCK_CHANGE,
        NotificationCategory.LOWEST_PRICE,
        NotificationCategory.THRESHOLD_DROP,
    ],
)
def test_every_alert_category_has_a_template(category: NotificationCategory) -> None:
    rendered = render_email(category, PRODUCT)

    assert PRODUCT.identifier in rendered.text
    assert PRODUCT.identifier in rendered.html
    assert "Espresso Machine &lt;Deluxe&gt;" in rendered.html
    assert "Espresso Machine <Deluxe>" in rendered.text


def test_none_category_cannot_be_rendered() -> None:
    with pytest.raises(ValueError):
        render_email(NotificationCategory.NONE, PRODUCT)
