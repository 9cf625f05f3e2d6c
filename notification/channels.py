#!/usr/bin/env python3
"""
Notification Channels

Transports for match notifications and digests. Every channel takes a
rendered message (subject, HTML, optional plain text) and reports a
DeliveryResult instead of raising, so a dispatcher can count failures per
recipient and move on.

Usage:
    from notification.channels import NotificationChannelFactory

    channel = NotificationChannelFactory.get_channel('email')
    result = channel.send('user@example.com', 'Subject', '<p>Hi</p>', 'Hi')
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, Optional
import ipaddress
import logging
import os
import smtplib
import socket
import urllib.parse
import uuid
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

import requests

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "DeliveryResult":
        return cls(success=False, error=error)


def _validate_webhook_url(url: str) -> bool:
    """
    Validate webhook URL to prevent SSRF.

    Scheme must be http(s) and the host must resolve to public addresses only.
    """
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in ('http', 'https'):
        logger.error(f"Invalid URL scheme: {parsed.scheme}")
        return False
    if not parsed.hostname:
        logger.error("URL missing hostname")
        return False

    try:
        addrinfo = socket.getaddrinfo(parsed.hostname, None)
    except socket.gaierror:
        logger.error(f"Could not resolve hostname: {parsed.hostname}")
        return False

    for _, _, _, _, sockaddr in addrinfo:
        ip = ipaddress.ip_address(sockaddr[0])
        if ip.is_private or ip.is_loopback or ip.is_reserved or ip.is_link_local:
            logger.error(f"URL resolves to private/reserved IP: {ip}")
            return False
    return True


def _is_dry_run_mode() -> bool:
    """Check if notification channels should run in dry-run (log-only) mode."""
    return os.environ.get('NOTIFICATION_DRY_RUN', '').lower() in ('true', '1', 'yes')


def mask_email(email: Optional[str]) -> str:
    """
    Mask email address for safe logging.

    Shows only domain, e.g., "***@example.com"
    """
    if not email or '@' not in email:
        return "***"
    _, domain = email.rsplit('@', 1)
    return f"***@{domain}"


class NotificationChannel(ABC):
    """
    Abstract base class for all notification channels.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def is_dry_run(self) -> bool:
        return self.dry_run or _is_dry_run_mode()

    @property
    @abstractmethod
    def channel_type(self) -> str:
        """Return the channel type identifier."""
        pass

    @abstractmethod
    def send(
        self,
        recipient: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> DeliveryResult:
        """
        Send a rendered message through this channel.

        Returns:
            DeliveryResult with a message id on success, or the error
        """
        pass

    def validate_config(self) -> bool:
        return True


class EmailChannel(NotificationChannel):
    """Email notification channel via SMTP."""

    def __init__(self, from_email: Optional[str] = None, dry_run: bool = False):
        super().__init__(dry_run=dry_run)
        self.from_email = from_email or os.environ.get('FROM_EMAIL', 'noreply@matching.local')

    @property
    def channel_type(self) -> str:
        return 'email'

    def validate_config(self) -> bool:
        required_vars = ['SMTP_SERVER', 'SMTP_PORT', 'SMTP_USERNAME', 'SMTP_PASSWORD']
        return all(os.environ.get(var) for var in required_vars)

    def send(
        self,
        recipient: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> DeliveryResult:
        if not recipient:
            return DeliveryResult.failed("Missing recipient")

        if self.is_dry_run():
            message_id = f"dry-run-{uuid.uuid4()}"
            logger.info(f"[DRY RUN] Email to {mask_email(recipient)}: {subject}")
            return DeliveryResult(success=True, message_id=message_id)

        if not self.validate_config():
            logger.error("Email not configured - SMTP environment variables not set")
            return DeliveryResult.failed("SMTP not configured")

        smtp_server = os.environ.get('SMTP_SERVER', 'localhost')
        smtp_port = int(os.environ.get('SMTP_PORT', '587'))
        username = os.environ.get('SMTP_USERNAME', '')
        password = os.environ.get('SMTP_PASSWORD', '')

        msg = MIMEMultipart('alternative')
        msg['From'] = self.from_email
        msg['To'] = recipient
        msg['Subject'] = subject
        msg['Message-ID'] = make_msgid(domain=self.from_email.rsplit('@', 1)[-1])
        if text_body:
            msg.attach(MIMEText(text_body, 'plain', 'utf-8'))
        msg.attach(MIMEText(html_body, 'html', 'utf-8'))

        try:
            with smtplib.SMTP(smtp_server, smtp_port) as server:
                server.starttls()
                server.login(username, password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {mask_email(recipient)}: {e}")
            return DeliveryResult.failed(str(e))

        logger.info(f"Email sent to {mask_email(recipient)}")
        return DeliveryResult(success=True, message_id=msg['Message-ID'])


class WebhookChannel(NotificationChannel):
    """Generic webhook channel: POSTs the rendered message as JSON."""

    @property
    def channel_type(self) -> str:
        return 'webhook'

    def send(
        self,
        recipient: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> DeliveryResult:
        if self.is_dry_run():
            logger.info(f"[DRY RUN] Webhook notification: {subject}")
            return DeliveryResult(success=True, message_id=f"dry-run-{uuid.uuid4()}")

        if not _validate_webhook_url(recipient):
            return DeliveryResult.failed("Invalid or unsafe webhook URL")

        payload = {
            'type': 'match_notification',
            'subject': subject,
            'text': text_body,
            'html': html_body,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'metadata': metadata or {},
        }
        headers = {
            'Content-Type': 'application/json',
            'User-Agent': 'Matching-Notification-Service/1.0'
        }

        try:
            response = requests.post(recipient, json=payload, headers=headers, timeout=30)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to send webhook: {e}")
            return DeliveryResult.failed(str(e))

        parsed = urllib.parse.urlparse(recipient)
        logger.info(f"Webhook sent to {parsed.scheme}://{parsed.hostname}{parsed.path}")
        return DeliveryResult(success=True, message_id=response.headers.get('X-Request-Id') or str(uuid.uuid4()))


class NotificationChannelFactory:
    """
    Registry of channel classes keyed by type.
    """

    _channels: Dict[str, type] = {
        'email': EmailChannel,
        'webhook': WebhookChannel,
    }

    @classmethod
    def get_channel(cls, channel_type: str, **kwargs) -> NotificationChannel:
        """
        Raises:
            ValueError: If channel type is not registered
        """
        channel_class = cls._channels.get(channel_type.lower())
        if not channel_class:
            raise ValueError(f"Unknown channel type: {channel_type}. "
                             f"Available: {', '.join(cls._channels.keys())}")
        return channel_class(**kwargs)

    @classmethod
    def register_channel(cls, channel_type: str, channel_class: type):
        if not issubclass(channel_class, NotificationChannel):
            raise ValueError("Channel class must extend NotificationChannel")

        cls._channels[channel_type.lower()] = channel_class
        logger.info(f"Registered new channel type: {channel_type}")

    @classmethod
    def list_channels(cls) -> list:
        return list(cls._channels.keys())
