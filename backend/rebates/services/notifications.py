# Overview: Outbound notification delivery (verification codes, order reminders).

from __future__ import annotations

from flask import current_app


class LogNotifier:
    """Default notifier: writes the message to the application log instead of sending it."""

    def send(self, destination: str, subject: str, body: str) -> None:
        current_app.logger.info("Notification to %s: %s | %s", destination, subject, body)


def get_notifier():
    """
    Notifier configured under NOTIFIER, or LogNotifier.

    Any object with send(destination, subject, body) works; delivery errors
    propagate to the caller.
    """
    return current_app.config.get("NOTIFIER") or LogNotifier()
