"""Alert channel adapters"""
from alert.adapter.base import BaseAlertChannel
from alert.adapter.email import EmailAlertChannel
from alert.adapter.slack import SlackAlertChannel

__all__ = ["BaseAlertChannel", "EmailAlertChannel", "SlackAlertChannel"]
