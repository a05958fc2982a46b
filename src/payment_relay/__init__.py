"""payment-relay: Stripe webhook verification and real-time event fan-out."""

__version__ = "0.1.0"
