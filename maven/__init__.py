# Maven web app
#
# Packages:
#   board/      - Task board: schema, bucketing, controller, stores, snapshot cache
#   config.py   - YAML + environment configuration
#   auth.py     - Sign-up / sign-in sessions and auth state events
#   profile.py  - Profile editor and avatar storage
#   checkout.py - Stripe checkout-session endpoint
#   server.py   - Flask app and CLI entry point
