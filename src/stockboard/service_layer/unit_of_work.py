"""
Unit of Work de l'inventaire.

Une mutation de l'inventaire (mouvement, catalogue, acquittement,
instantané distant) se fait dans un bloc `with uow:` et n'est
conservée que si `uow.commit()` est appelé avant la sortie du bloc.
Les événements émis par les inventaires consultés sont ensuite
remis au message bus via `collect_new_events()`.

Deux variantes : base SQL (SQLAlchemy) ou fichier JSON local.
"""

from __future__ import annotations

import abc
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from stockboard import config
from stockboard.adapters import local_state, repository

DEFAULT_SESSION_FACTORY = sessionmaker(
    bind=create_engine(config.get_settings().database_uri)
)


class AbstractUnitOfWork(abc.ABC):
    """Expose `inventaires` ; sans commit, la sortie du bloc annule tout."""

    inventaires: repository.AbstractRepository

    def __enter__(self) -> AbstractUnitOfWork:
        return self

    def __exit__(self, *args: object) -> None:
        self.rollback()

    def commit(self) -> None:
        self._commit()

    def collect_new_events(self):
        """
        Collecte les événements émis par les inventaires vus
        pendant cette transaction et vide leur file.
        """
        for inventaire in self.inventaires.seen:
            while inventaire.événements:
                yield inventaire.événements.pop(0)

    @abc.abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """Une session SQLAlchemy par bloc `with`, fermée à la sortie."""

    def __init__(self, session_factory: sessionmaker = DEFAULT_SESSION_FACTORY):
        self.session_factory = session_factory

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self.session: Session = self.session_factory()
        self.inventaires = repository.SqlAlchemyRepository(self.session)
        return super().__enter__()

    def __exit__(self, *args: object) -> None:
        super().__exit__(*args)
        self.session.close()

    def _commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class JsonFileUnitOfWork(AbstractUnitOfWork):
    """
    UoW de la variante « stockage local ».

    L'état complet est relu à chaque entrée et réécrit d'un bloc au
    commit. Sans commit, les modifications en mémoire sont abandonnées.
    """

    def __init__(self, path: Optional[Path] = None, key: str = local_state.STORAGE_KEY):
        self.path = Path(path or config.get_settings().state_file)
        self.key = key

    def __enter__(self) -> JsonFileUnitOfWork:
        self.inventaires = local_state.LocalStateRepository(
            local_state.read_state(self.path, self.key)
        )
        return super().__enter__()

    def _commit(self) -> None:
        local_state.write_state(self.path, self.inventaires.dump(), self.key)

    def rollback(self) -> None:
        pass
