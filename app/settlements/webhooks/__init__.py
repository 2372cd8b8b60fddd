"""Stripe webhook ingestion: endpoint, event processing and handlers."""
