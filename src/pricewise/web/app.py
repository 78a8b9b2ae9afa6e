"""Flask application exposing the refresh trigger and product management."""
from __future__ import annotations

from typing import Any

from flask import Flask, jsonify, request

from ..errors import PricewiseError, SourceUnavailable
from ..models import RunStatus
from ..services.pricing_service import PricingService
from ..services.subscription_service import SubscriptionService


def create_app(pricing_service: PricingService, subscription_service: SubscriptionService) -> Flask:
    app = Flask(__name__)

    app.config["pricing_service"] = pricing_service
    app.config["subscription_service"] = subscription_service

    def _error(message: str, status: int):
        return jsonify({"message": message, "error": True}), status

    @app.route("/api/cron")
    def cron():
        result = pricing_service.run_safely()
        payload: dict[str, Any] = result.to_dict()
        if result.overall_status is RunStatus.SYSTEMIC_FAILURE:
            payload["error"] = True
            return jsonify(payload), 500
        payload["message"] = "Ok"
        return jsonify(payload)

    @app.route("/products")
    def list_products():
        try:
            products = subscription_service.all_products()
        except PricewiseError as exc:
            return _error(f"Failed to get all products: {exc}", 503)
        return jsonify({"data": [product.to_dict() for product in products]})

    @app.route("/products/detail")
    def product_detail():
        # Identifiers are URLs, so they travel as a query parameter.
        identifier = request.args.get("url", "").strip()
        if not identifier:
            return _error("Product URL is required", 400)
        try:
            product = subscription_service.repository.get(identifier)
        except PricewiseError as exc:
            return _error(f"Failed to get product: {exc}", 503)
        if product is None:
            return _error("Unknown product", 404)
        return jsonify({"data": product.to_dict()})

    @app.route("/products", methods=["POST"])
    def track_product():
        data = request.get_json(silent=True) or {}
        url = str(data.get("url") or "").strip()
        if not url:
            return _error("Product URL is required", 400)
        try:
            product = subscription_service.track(url)
        except SourceUnavailable as exc:
            return _error(f"Failed to scrape product: {exc}", 502)
        except PricewiseError as exc:
            return _error(f"Failed to create/update product: {exc}", 503)
        return jsonify({"data": product.to_dict()}), 201

    @app.route("/products/subscribers", methods=["POST"])
    def subscribe():
        data = request.get_json(silent=True) or {}
        url = str(data.get("url") or "").strip()
        email = str(data.get("email") or "").strip()
        if not url or not email:
            return _error("Product URL and e-mail are required", 400)
        try:
            added = subscription_service.subscribe(url, email)
        except KeyError:
            return _error("Unknown product", 404)
        except ValueError as exc:
            return _error(str(exc), 400)
        except PricewiseError as exc:
            return _error(f"Failed to subscribe: {exc}", 503)
        if not added:
            return jsonify({"message": "Already subscribed", "subscribed": True})
        return jsonify({"message": "Subscribed", "subscribed": True}), 201

    return app
