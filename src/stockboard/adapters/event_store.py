"""
Adapter pour la synchronisation avec un journal distant.

Le contrat avec le magasin distant se limite à deux opérations :
ajouter un mouvement (`append`) et s'abonner au flux ordonné des
mouvements (`subscribe`). Chaque livraison est un instantané complet
qui remplace la vue locale : pas de fusion, le dernier gagne.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from sqlalchemy import (
    BigInteger,
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    func,
    insert,
    select,
)
from sqlalchemy.engine import Engine

from stockboard.domain import model

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """État du journal distant, dans l'ordre attribué par le magasin."""

    events: tuple[model.Mouvement, ...] = field(default_factory=tuple)
    sources: Optional[tuple[str, ...]] = None


Subscriber = Callable[[Snapshot], None]


class AbstractEventStore(abc.ABC):
    """Interface abstraite du magasin d'événements distant."""

    def __init__(self) -> None:
        self.subscribers: list[Subscriber] = []

    @abc.abstractmethod
    def append(self, mouvement: model.Mouvement) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def snapshot(self) -> Snapshot:
        raise NotImplementedError

    def subscribe(self, callback: Subscriber) -> None:
        """Abonne `callback` ; l'état courant lui est livré immédiatement."""
        self.subscribers.append(callback)
        callback(self.snapshot())

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for callback in list(self.subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Erreur lors de la livraison d'un instantané à %s", callback)


class InMemoryEventStore(AbstractEventStore):
    """Magasin en mémoire : chaque ajout pousse un instantané aux abonnés."""

    def __init__(self) -> None:
        super().__init__()
        self._events: list[model.Mouvement] = []

    def append(self, mouvement: model.Mouvement) -> None:
        self._events.append(replace(mouvement))
        self._publish()

    def snapshot(self) -> Snapshot:
        return Snapshot(events=tuple(replace(e) for e in self._events))


remote_metadata = MetaData()

remote_stock_events = Table(
    "remote_stock_events",
    remote_metadata,
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("id", String(64), nullable=False),
    Column("item", String(255), nullable=False),
    Column("type", String(255), nullable=False),
    Column("qty", Integer, nullable=False),
    Column("direction", String(8), nullable=False),
    Column("at", BigInteger, nullable=False),
    Column("source", String(255), nullable=True),
    Column("price", Float, nullable=True),
    Column("invoice", String(255), nullable=True),
)


class SqlAlchemyEventStore(AbstractEventStore):
    """
    Magasin partagé par plusieurs clients via une table SQL.

    L'ordre du flux est l'ordre d'insertion côté base (`seq`),
    pas l'ordre de soumission des clients. Les abonnés ne sont
    notifiés que lors d'un `poll()` qui constate de nouvelles lignes.
    """

    def __init__(self, engine: Engine | str):
        super().__init__()
        self.engine = create_engine(engine) if isinstance(engine, str) else engine
        remote_metadata.create_all(self.engine)
        self._last_seq: Optional[int] = None

    def append(self, mouvement: model.Mouvement) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                insert(remote_stock_events).values(
                    id=mouvement.id,
                    item=mouvement.article,
                    type=mouvement.type,
                    qty=mouvement.quantité,
                    direction=mouvement.sens,
                    at=mouvement.horodatage,
                    source=mouvement.fournisseur,
                    price=mouvement.prix,
                    invoice=mouvement.facture,
                )
            )

    def snapshot(self) -> Snapshot:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(remote_stock_events).order_by(remote_stock_events.c.seq)
            ).all()
        self._last_seq = rows[-1].seq if rows else 0
        return Snapshot(
            events=tuple(
                model.Mouvement(
                    id=r.id,
                    article=r.item,
                    type=r.type,
                    quantité=r.qty,
                    sens=r.direction,
                    horodatage=r.at,
                    fournisseur=r.source,
                    prix=r.price,
                    facture=r.invoice,
                )
                for r in rows
            )
        )

    def poll(self) -> bool:
        """Livre un instantané si le journal a avancé ; retourne True dans ce cas."""
        with self.engine.connect() as conn:
            last = conn.execute(select(func.max(remote_stock_events.c.seq))).scalar() or 0
        if last == self._last_seq:
            return False
        self._publish()
        return True
