"""Slack Web API integration."""

from threadly.slack.gateway import SlackGateway
from threadly.slack.models import PostedMessage, TokenBundle


__all__ = ["PostedMessage", "SlackGateway", "TokenBundle"]
