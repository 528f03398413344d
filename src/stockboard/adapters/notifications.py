"""
Adapter pour les notifications de rupture de stock.

Ce module fournit une abstraction sur l'envoi d'alertes
(emails, journaux, etc.), permettant de découpler le domaine
du mécanisme de notification concret.
"""

from __future__ import annotations

import abc
import logging
import smtplib

logger = logging.getLogger(__name__)


class AbstractNotifications(abc.ABC):
    """Canal d'alerte utilisé quand un couple article/type tombe à zéro."""

    @abc.abstractmethod
    def send(self, destination: str, message: str) -> None:
        raise NotImplementedError


class LogNotifications(AbstractNotifications):
    """Se contente de journaliser l'alerte (valeur par défaut)."""

    def send(self, destination: str, message: str) -> None:
        logger.warning("Alerte pour %s : %s", destination, message)


class EmailNotifications(AbstractNotifications):
    """Alerte par email, activée avec STOCKBOARD_NOTIFICATIONS_BACKEND=email."""

    def __init__(self, smtp_host: str = "localhost", smtp_port: int = 587):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port

    def send(self, destination: str, message: str) -> None:
        msg = f"Subject: Alerte de stock\n\n{message}"
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as smtp:
            smtp.sendmail(
                from_addr="stockboard@example.com",
                to_addrs=[destination],
                msg=msg.encode("utf-8"),
            )
