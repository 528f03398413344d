"""
Repository des inventaires.

Un inventaire est retrouvé par sa référence (`get(réf)`) ; le stockage
réel (base SQL ou fichier JSON local) reste caché derrière `add`/`get`.
"""

from __future__ import annotations

import abc

from sqlalchemy.orm import Session

from stockboard.domain import model


class AbstractRepository(abc.ABC):
    """
    Collection d'inventaires indexée par référence.

    Les méthodes publiques (add, get) gèrent le tracking via `seen`,
    puis délèguent aux méthodes abstraites préfixées _.
    """

    seen: set[model.Inventaire]

    def __init__(self) -> None:
        # Inventaires touchés pendant le bloc `with uow:` ; leurs événements
        # sont relevés par collect_new_events()
        self.seen: set[model.Inventaire] = set()

    def add(self, inventaire: model.Inventaire) -> None:
        """Ajoute un inventaire au repository et le marque comme vu."""
        self._add(inventaire)
        self.seen.add(inventaire)

    def get(self, réf: str) -> model.Inventaire | None:
        """Récupère un inventaire par sa référence et le marque comme vu."""
        inventaire = self._get(réf)
        if inventaire:
            self.seen.add(inventaire)
        return inventaire

    @abc.abstractmethod
    def _add(self, inventaire: model.Inventaire) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def _get(self, réf: str) -> model.Inventaire | None:
        raise NotImplementedError


class SqlAlchemyRepository(AbstractRepository):
    """Inventaires chargés par la session SQLAlchemy du Unit of Work."""

    def __init__(self, session: Session):
        super().__init__()
        self.session = session

    def _add(self, inventaire: model.Inventaire) -> None:
        self.session.add(inventaire)

    def _get(self, réf: str) -> model.Inventaire | None:
        return (
            self.session.query(model.Inventaire)
            .filter_by(réf=réf)
            .first()
        )
