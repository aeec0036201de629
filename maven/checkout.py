"""
Checkout endpoint: create a Stripe subscription checkout session.

    OPTIONS /functions/create-checkout   → CORS preflight
    POST    /functions/create-checkout   body: { user_id }
                                         → 200 { sessionId } | 400 { error }
"""
import logging

import stripe
from flask import Blueprint, current_app, jsonify, request

logger = logging.getLogger(__name__)

bp = Blueprint("checkout", __name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


class CheckoutError(Exception):
    """Raised when a checkout session can't be created."""
    pass


@bp.after_request
def add_cors_headers(response):
    for key, value in CORS_HEADERS.items():
        response.headers[key] = value
    return response


def create_checkout_session(secret_key: str, price_id: str, user_id: str, origin: str) -> str:
    """Create the session and return its id."""
    if not secret_key:
        raise CheckoutError("Missing Stripe secret key in environment variables")
    if not price_id:
        raise CheckoutError("Missing Stripe price ID in environment variables")
    if not user_id:
        raise CheckoutError("user_id is required")

    logger.info(f"Creating checkout session with price ID: {price_id}")
    session = stripe.checkout.Session.create(
        api_key=secret_key,
        payment_method_types=["card"],
        line_items=[{"price": price_id, "quantity": 1}],
        mode="subscription",
        success_url=f"{origin}/dashboard?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{origin}/upgrade",
        client_reference_id=user_id,
    )
    logger.info(f"Checkout session created successfully: {session.id}")
    return session.id


@bp.route("/functions/create-checkout", methods=["POST", "OPTIONS"])
def create_checkout():
    if request.method == "OPTIONS":
        return "", 200

    cfg = current_app.config["MAVEN"]
    logger.info(f"Stripe key exists: {bool(cfg.stripe_secret_key)}")
    try:
        data = request.get_json(force=True, silent=True)
        if not isinstance(data, dict):
            raise CheckoutError("Request body must be a JSON object")
        user_id = data.get("user_id")
        logger.info(f"Processing checkout for user: {user_id}")
        origin = request.headers.get("Origin") or request.host_url.rstrip("/")
        session_id = create_checkout_session(
            cfg.stripe_secret_key, cfg.stripe_price_id, user_id, origin
        )
        return jsonify({"sessionId": session_id}), 200
    except Exception as e:
        logger.error(f"Checkout failed: {type(e).__name__}: {e}")
        return jsonify({"error": str(e)}), 400
