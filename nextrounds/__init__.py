"""
Next Rounds AI
Interview question generator with free/Pro usage metering.

Architecture:
- Supabase: auth and the hosted Postgres database (source of truth)
- Stripe: subscriptions, mirrored into the users table by webhooks
- Gemini: question generation only
"""

__version__ = "1.0.0"
