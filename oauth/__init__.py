"""
oauth — Shopify app installation over OAuth.

Provides the installation handshake end to end:
  • Authorization URL generation with a single-use state token
  • Callback validation against the state ledger (anti-CSRF / anti-replay)
  • Authorization code → access token exchange
  • Per-shop token storage (upsert) with Fernet encryption at rest

The ledger and credential store are injected into OAuthInstaller; SQL
implementations back production and in-memory ones back tests.
"""
