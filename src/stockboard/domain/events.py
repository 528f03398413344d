"""
Events du domaine.

Les events représentent des faits qui se sont produits dans l'inventaire.
Ils sont immuables et nommés au passé (quelque chose s'est passé).
"""

from dataclasses import dataclass
from typing import Optional


class Event:
    """Classe de base pour tous les events du domaine."""
    pass


@dataclass(frozen=True)
class StockRecorded(Event):
    """Un mouvement de stock a été ajouté au journal."""

    ref: str
    id: str
    item: str
    type: str
    qty: int
    direction: str
    at: int
    source: Optional[str] = None
    price: Optional[float] = None
    invoice: Optional[str] = None


@dataclass(frozen=True)
class OutOfStock(Event):
    """Un couple (article, type) vient de tomber à zéro."""

    ref: str
    item: str
    type: str


@dataclass(frozen=True)
class CatalogChanged(Event):
    """Une entrée de catalogue a été ajoutée ou retirée."""

    ref: str
    kind: str
    name: str
    parent: str
    action: str
