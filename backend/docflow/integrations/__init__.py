"""Outbound clients: inference service, Slack, webhooks."""
