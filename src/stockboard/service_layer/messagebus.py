"""
Message Bus de l'inventaire.

Toutes les écritures (saisies du tableau de bord, instantanés du
journal distant, tick du changement de jour) passent par ce bus,
qui les achemine vers les handlers de la service layer.

Une command produit au plus un résultat (l'identifiant du mouvement,
un booléen de changement de catalogue...) et son erreur remonte à
l'appelant. Les events émis par l'agrégat sont traités ensuite, dans
l'ordre ; l'échec d'un handler d'event est journalisé et n'affecte
ni la command d'origine ni les autres handlers.

Le bus est partagé entre les requêtes HTTP et la minuterie : un verrou
sérialise les dispatchs et les lectures faites via `query()`, qui ne
voient donc jamais un Unit of Work en cours d'utilisation. Un message
soumis pendant un dispatch (par exemple l'instantané renvoyé par
l'abonnement distant juste après un ajout) est placé en file derrière
le message courant ; l'échec d'une telle command imbriquée est
journalisé et ne remonte pas à l'appelant de la command d'origine.
"""

from __future__ import annotations

import inspect
import logging
import threading
from typing import Any, Callable, Union

from stockboard.domain import commands, events
from stockboard.service_layer import unit_of_work

logger = logging.getLogger(__name__)

Message = Union[commands.Command, events.Event]


class MessageBus:
    """
    Dispatch des commands et events avec injection de dépendances.

    `dependencies` associe un nom de paramètre (notifications, clock,
    event_store, alert_recipient...) à l'objet à injecter ; `uow`
    est toujours disponible.
    """

    def __init__(
        self,
        uow: unit_of_work.AbstractUnitOfWork,
        event_handlers: dict[type[events.Event], list[Callable]],
        command_handlers: dict[type[commands.Command], Callable],
        dependencies: dict[str, Any] | None = None,
    ):
        self.uow = uow
        self.event_handlers = event_handlers
        self.command_handlers = command_handlers
        self.dependencies = dependencies or {}
        self.queue: list[Message] = []
        self._lock = threading.RLock()
        self._dispatching = False

    def handle(self, message: Message) -> list[Any]:
        """
        Traite `message` puis, en cascade, tous les events qui en découlent.

        Retourne une liste contenant le résultat de `message` s'il s'agit
        d'une command, vide pour un event. Un appel imbriqué retourne une
        liste vide : son message sera traité par le dispatch en cours.
        """
        with self._lock:
            if self._dispatching:
                self.queue.append(message)
                return []
            self._dispatching = True
            try:
                return self._drain(message)
            finally:
                if self.queue:
                    logger.warning(
                        "%d message(s) abandonné(s) après l'échec de %s",
                        len(self.queue), message,
                    )
                    self.queue = []
                self._dispatching = False

    def query(self, view: Callable, *args: Any, **kwargs: Any) -> Any:
        """Exécute une vue de lecture sur le Unit of Work du bus, sous le verrou."""
        with self._lock:
            return view(*args, uow=self.uow, **kwargs)

    def _drain(self, first: Message) -> list[Any]:
        self.queue = [first]
        results: list[Any] = []
        while self.queue:
            message = self.queue.pop(0)
            if isinstance(message, events.Event):
                self._run_event_handlers(message)
            elif not isinstance(message, commands.Command):
                raise ValueError(f"Message de type inconnu : {type(message)}")
            elif message is first:
                results.append(self._run_command(message))
            else:
                self._run_queued_command(message)
        return results

    def _run_queued_command(self, command: commands.Command) -> None:
        # La command d'origine est déjà committée : une erreur ici ne la concerne pas
        try:
            self._run_command(command)
        except Exception:
            logger.exception("Erreur lors du traitement de la command en file %s", command)

    def _run_command(self, command: commands.Command) -> Any:
        handler = self.command_handlers.get(type(command))
        if handler is None:
            raise ValueError(f"Aucun handler pour la command {type(command)}")
        logger.debug("Command %s -> %s", command, handler.__name__)
        result = self._call_handler(handler, command)
        self._collect_events()
        return result

    def _run_event_handlers(self, event: events.Event) -> None:
        for handler in self.event_handlers.get(type(event), []):
            try:
                logger.debug("Event %s -> %s", event, handler.__name__)
                self._call_handler(handler, event)
                self._collect_events()
            except Exception:
                logger.exception("Erreur lors du traitement de l'event %s", event)

    def _collect_events(self) -> None:
        self.queue.extend(self.uow.collect_new_events())

    def _call_handler(self, handler: Callable, message: Message) -> Any:
        # Le premier paramètre reçoit le message ; un paramètre sans
        # dépendance connue garde sa valeur par défaut.
        kwargs: dict[str, Any] = {}
        for name in list(inspect.signature(handler).parameters)[1:]:
            if name == "uow":
                kwargs[name] = self.uow
            elif name in self.dependencies:
                kwargs[name] = self.dependencies[name]
        return handler(message, **kwargs)
