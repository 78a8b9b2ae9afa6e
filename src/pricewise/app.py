"""Application bootstrapper for the Pricewise price tracking service."""
from __future__ import annotations

import argparse
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from flask import Flask

from .api.client import AmazonProductClient
from .config import AppConfig
from .notifications.base import Notifier, NullNotifier
from .notifications.email_notifier import EmailNotifier
from .scheduler.poller import PollingScheduler
from .services.pricing_service import PricingService
from .services.subscription_service import SubscriptionService
from .storage.repository import JsonProductStore
from .web.app import create_app

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Runtime:
    config: AppConfig
    pricing_service: PricingService
    subscription_service: SubscriptionService


def build_runtime(config: AppConfig) -> Runtime:
    """Wire the store, source, notifier and services from ``config``."""

    config.ensure_data_directories()
    repository = JsonProductStore(config.products_directory)
    source = AmazonProductClient(default_timeout=config.pipeline.fetch_timeout_seconds)
    notifier: Notifier
    if config.email.configured:
        notifier = EmailNotifier(config.email)
    else:
        logger.warning("SMTP is not configured; alerts will only be logged")
        notifier = NullNotifier()

    return Runtime(
        config=config,
        pricing_service=PricingService(
            source=source,
            repository=repository,
            notifier=notifier,
            config=config.pipeline,
        ),
        subscription_service=SubscriptionService(source=source, repository=repository, notifier=notifier),
    )


def create_scheduler(runtime: Runtime) -> PollingScheduler:
    """Create and start the background scheduler used for recurring refreshes."""

    scheduler = PollingScheduler(runtime.config.polling.interval_seconds, runtime.pricing_service.run_safely)
    scheduler.start()
    return scheduler


def bootstrap_app(config: AppConfig | None = None) -> tuple[Flask, Runtime]:
    """Factory used by the entrypoint for running the web API."""

    runtime = build_runtime(config or AppConfig.from_env())
    app = create_app(runtime.pricing_service, runtime.subscription_service)
    return app, runtime


def run(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by the CLI to launch the API and scheduler, or a single refresh."""

    parser = argparse.ArgumentParser(prog="pricewise", description="Track product prices and alert subscribers.")
    parser.add_argument("--once", action="store_true", help="run one refresh, print the result and exit")
    parser.add_argument("--no-scheduler", action="store_true", help="serve the API without recurring refreshes")
    args = parser.parse_args(argv)

    config = AppConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.once:
        runtime = build_runtime(config)
        result = runtime.pricing_service.run_safely()
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.ok else 1

    app, runtime = bootstrap_app(config)
    if not args.no_scheduler:
        app.config["scheduler"] = create_scheduler(runtime)
    app.run(debug=config.environment == "development", use_reloader=False)
    return 0


if __name__ == "__main__":  # pragma: no cover - manual execution only
    raise SystemExit(run())
