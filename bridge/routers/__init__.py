"""HTTP routers of the webhook service."""
