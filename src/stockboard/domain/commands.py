"""
Commands du domaine.

Les commands représentent des intentions : quelque chose que
l'inventaire doit faire. Contrairement aux events (faits passés),
les commands sont des demandes qui peuvent échouer.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from stockboard.domain.model import RÉF_PAR_DÉFAUT, Mouvement


class Command:
    """Classe de base pour toutes les commands."""
    pass


@dataclass(frozen=True)
class RecordStockIn(Command):
    """Demande d'entrée en stock, avec fournisseur, prix et facture facultatifs."""

    item: str
    type: str
    qty: int
    source: Optional[str] = None
    price: Optional[float] = None
    invoice: Optional[str] = None
    at: Optional[int] = None
    ref: str = RÉF_PAR_DÉFAUT


@dataclass(frozen=True)
class RecordStockOut(Command):
    """Demande de sortie de stock."""

    item: str
    type: str
    qty: int
    at: Optional[int] = None
    ref: str = RÉF_PAR_DÉFAUT


@dataclass(frozen=True)
class AddCatalogEntry(Command):
    """Déclare un article, un type (sous un article) ou un fournisseur."""

    kind: str
    name: str
    parent: str = ""
    ref: str = RÉF_PAR_DÉFAUT


@dataclass(frozen=True)
class RemoveCatalogEntry(Command):
    """Retire un nom des menus sans toucher à l'historique."""

    kind: str
    name: str
    parent: str = ""
    ref: str = RÉF_PAR_DÉFAUT


@dataclass(frozen=True)
class AcknowledgeOutOfStock(Command):
    """Acquitte le message de rupture d'un couple pour la journée."""

    item: str
    type: str
    ref: str = RÉF_PAR_DÉFAUT


@dataclass(frozen=True)
class ClearNotifications(Command):
    ref: str = RÉF_PAR_DÉFAUT


@dataclass(frozen=True)
class ApplySnapshot(Command):
    """Instantané reçu de l'abonnement distant : remplace le journal."""

    events: tuple[Mouvement, ...] = field(default_factory=tuple)
    sources: Optional[tuple[str, ...]] = None
    ref: str = RÉF_PAR_DÉFAUT


@dataclass(frozen=True)
class RollOverDay(Command):
    """Émise périodiquement : fait tomber les acquittements d'un autre jour."""

    today: Optional[date] = None
    ref: str = RÉF_PAR_DÉFAUT
