"""
Jinja2 rendering of notification emails.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from escrowmail.application.ports.notification_port import RenderedEmail

from .messages import Notification, NotificationKind


TEMPLATES_DIR = Path(__file__).parent / "templates"

SUBJECTS: Dict[NotificationKind, str] = {
    NotificationKind.INVITE: "You received {{ amount }} {{ token }} from {{ sender_name }}!",
    NotificationKind.SENDER_CONFIRMATION: "Transfer pending for {{ recipient_email }}",
    NotificationKind.EXPIRING_REMINDER: (
        "Reminder: claim your {{ amount }} {{ token }} "
        "({{ days_left }} day{{ '' if days_left == 1 else 's' }} left)"
    ),
    NotificationKind.CLAIMED: "{{ recipient_email }} claimed your {{ amount }} {{ token }}",
    NotificationKind.EXPIRED: "Unclaimed transfer returned: {{ amount }} {{ token }}",
}


class EmailRenderer:
    """Renders a Notification into subject + HTML body."""

    def __init__(self, templates_dir: Optional[Path] = None, *, support_email: str = ""):
        self.templates_dir = Path(templates_dir or TEMPLATES_DIR)
        self.support_email = support_email
        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=select_autoescape(["html", "xml", "j2"]),
            undefined=StrictUndefined,
        )
        # Subjects are plain text, not HTML.
        self._subject_env = Environment(autoescape=False, undefined=StrictUndefined)

    def render(self, notification: Notification) -> RenderedEmail:
        ctx = dict(notification.context)
        ctx.setdefault("support_email", self.support_email)
        subject = self._subject_env.from_string(SUBJECTS[notification.kind]).render(**ctx)
        template = self._env.get_template(f"{notification.kind.value}.html.j2")
        html = template.render(**ctx)
        return RenderedEmail(to=notification.to, subject=subject.strip(), html=html)
