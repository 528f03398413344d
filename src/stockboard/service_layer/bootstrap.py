"""
Bootstrap : assemblage de l'application (Composition Root).

Ce module construit le message bus avec toutes ses dépendances.
C'est ici que l'injection de dépendances est réalisée :
on assemble les composants concrets (ou les fakes pour les tests).

Un bus correspond à une instance de l'application : c'est lui qui
porte l'état partagé de l'inventaire pour toutes les vues.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from stockboard import config
from stockboard.adapters import event_store as event_store_adapter
from stockboard.adapters import notifications, orm
from stockboard.domain import commands, events
from stockboard.service_layer import handlers, messagebus, unit_of_work


def bootstrap(
    start_orm: bool = True,
    uow: unit_of_work.AbstractUnitOfWork | None = None,
    notifications_adapter: notifications.AbstractNotifications | None = None,
    event_store: Optional[event_store_adapter.AbstractEventStore] = None,
    clock: Callable[[], datetime] = datetime.now,
    inventory_ref: Optional[str] = None,
    **extra_dependencies: Any,
) -> messagebus.MessageBus:
    """
    Construit et retourne un MessageBus configuré.

    En production, les implémentations concrètes sont choisies
    d'après la configuration. En test, on injecte des fakes.
    Si un magasin distant est fourni, le bus s'y abonne : chaque
    instantané reçu devient une command ApplySnapshot.
    """
    settings = config.get_settings()
    inventory_ref = inventory_ref or settings.inventory_ref

    if uow is None:
        if settings.storage_backend == "json":
            uow = unit_of_work.JsonFileUnitOfWork()
        else:
            uow = unit_of_work.SqlAlchemyUnitOfWork()

    if start_orm:
        orm.start_mappers()
        if isinstance(uow, unit_of_work.SqlAlchemyUnitOfWork):
            orm.metadata.create_all(uow.session_factory.kw["bind"])

    if notifications_adapter is None:
        if settings.notifications_backend == "email":
            notifications_adapter = notifications.EmailNotifications(
                smtp_host=settings.smtp_host, smtp_port=settings.smtp_port
            )
        else:
            notifications_adapter = notifications.LogNotifications()

    dependencies: dict[str, Any] = {
        "notifications": notifications_adapter,
        "alert_recipient": settings.alert_recipient,
        "event_store": event_store,
        "clock": clock,
        **extra_dependencies,
    }

    bus = messagebus.MessageBus(
        uow=uow,
        event_handlers=EVENT_HANDLERS,
        command_handlers=COMMAND_HANDLERS,
        dependencies=dependencies,
    )

    if event_store is not None:
        def on_snapshot(snapshot: event_store_adapter.Snapshot) -> None:
            bus.handle(
                commands.ApplySnapshot(
                    events=snapshot.events, sources=snapshot.sources, ref=inventory_ref
                )
            )

        event_store.subscribe(on_snapshot)

    return bus


# --- Routage des messages vers les handlers ---

EVENT_HANDLERS: dict[type[events.Event], list] = {
    events.StockRecorded: [handlers.publier_mouvement],
    events.OutOfStock: [handlers.envoyer_alerte_rupture],
    events.CatalogChanged: [handlers.journaliser_changement_catalogue],
}

COMMAND_HANDLERS: dict[type[commands.Command], Any] = {
    commands.RecordStockIn: handlers.enregistrer_entrée,
    commands.RecordStockOut: handlers.enregistrer_sortie,
    commands.AddCatalogEntry: handlers.ajouter_au_catalogue,
    commands.RemoveCatalogEntry: handlers.retirer_du_catalogue,
    commands.AcknowledgeOutOfStock: handlers.acquitter_rupture,
    commands.ClearNotifications: handlers.effacer_notifications,
    commands.ApplySnapshot: handlers.appliquer_instantané,
    commands.RollOverDay: handlers.changer_de_jour,
}
