"""
Handlers pour les commands et events.

Les handlers sont les fonctions qui traitent les commands et events
transitant par le message bus.

- Command handlers : exécutent une action (peuvent échouer)
- Event handlers : réagissent à un fait passé (leurs erreurs sont loggées par le bus)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional, Union

from stockboard.domain import commands, events, model

if TYPE_CHECKING:
    from stockboard.adapters.event_store import AbstractEventStore
    from stockboard.adapters.notifications import AbstractNotifications
    from stockboard.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


# --- Exceptions ---


class MouvementInvalide(Exception):
    """Levée quand un mouvement de stock est incomplet ou de quantité non positive."""
    pass


class EntréeCatalogueInvalide(Exception):
    """Levée quand une entrée de catalogue est vide, inconnue ou sans article parent."""
    pass


class InventaireInconnu(Exception):
    """Levée quand la référence d'inventaire n'existe pas."""
    pass


def _en_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _est_entier(valeur: object) -> bool:
    # bool est une sous-classe d'int
    return isinstance(valeur, int) and not isinstance(valeur, bool)


def _obtenir_ou_créer(uow: AbstractUnitOfWork, réf: str) -> model.Inventaire:
    inventaire = uow.inventaires.get(réf=réf)
    if inventaire is None:
        inventaire = model.Inventaire(réf=réf)
        uow.inventaires.add(inventaire)
    return inventaire


# --- Command Handlers ---


def _enregistrer(
    cmd: Union[commands.RecordStockIn, commands.RecordStockOut],
    sens: str,
    uow: AbstractUnitOfWork,
    clock: Clock,
    fournisseur: Optional[str] = None,
    prix: Optional[float] = None,
    facture: Optional[str] = None,
) -> str:
    if not (cmd.item or "").strip() or not (cmd.type or "").strip():
        raise MouvementInvalide("Article et type sont obligatoires")
    if not _est_entier(cmd.qty) or cmd.qty <= 0:
        raise MouvementInvalide(f"Quantité invalide : {cmd.qty!r}")
    if cmd.at is not None and not _est_entier(cmd.at):
        raise MouvementInvalide(f"Horodatage invalide : {cmd.at!r}")

    maintenant = clock()
    with uow:
        inventaire = _obtenir_ou_créer(uow, cmd.ref)
        mouvement = inventaire.enregistrer(
            cmd.item,
            cmd.type,
            cmd.qty,
            sens,
            fournisseur=fournisseur,
            prix=prix,
            facture=facture,
            horodatage=cmd.at if cmd.at is not None else _en_ms(maintenant),
            jour=maintenant.date(),
        )
        identifiant = mouvement.id
        uow.commit()
    return identifiant


def enregistrer_entrée(
    cmd: commands.RecordStockIn,
    uow: AbstractUnitOfWork,
    clock: Clock = datetime.now,
) -> str:
    """
    Journalise une entrée en stock et retourne l'identifiant du mouvement.

    Lève MouvementInvalide si la saisie est incomplète ; rien n'est journalisé.
    """
    if cmd.price is not None and (
        isinstance(cmd.price, bool) or not isinstance(cmd.price, (int, float))
    ):
        raise MouvementInvalide(f"Prix invalide : {cmd.price!r}")
    return _enregistrer(
        cmd, model.ENTRÉE, uow, clock,
        fournisseur=cmd.source, prix=cmd.price, facture=cmd.invoice,
    )


def enregistrer_sortie(
    cmd: commands.RecordStockOut,
    uow: AbstractUnitOfWork,
    clock: Clock = datetime.now,
) -> str:
    """
    Journalise une sortie de stock.

    Une sortie supérieure au stock est acceptée telle quelle :
    seul le niveau affiché est ramené à zéro.
    """
    return _enregistrer(cmd, model.SORTIE, uow, clock)


def _vérifier_commande_catalogue(
    cmd: Union[commands.AddCatalogEntry, commands.RemoveCatalogEntry],
) -> None:
    if cmd.kind not in model.NATURES:
        raise EntréeCatalogueInvalide(f"Type d'entrée inconnu : {cmd.kind}")
    if not (cmd.name or "").strip():
        raise EntréeCatalogueInvalide("Le nom est obligatoire")
    if cmd.kind == model.TYPE and not (cmd.parent or "").strip():
        raise EntréeCatalogueInvalide(f"Le type {cmd.name} doit appartenir à un article")


def ajouter_au_catalogue(
    cmd: commands.AddCatalogEntry,
    uow: AbstractUnitOfWork,
    clock: Clock = datetime.now,
) -> bool:
    """Déclare une entrée de catalogue ; retourne False si elle l'était déjà."""
    _vérifier_commande_catalogue(cmd)
    with uow:
        inventaire = _obtenir_ou_créer(uow, cmd.ref)
        modifié = inventaire.ajouter_au_catalogue(
            cmd.kind, cmd.name, cmd.parent, jour=clock().date()
        )
        uow.commit()
    return modifié


def retirer_du_catalogue(
    cmd: commands.RemoveCatalogEntry,
    uow: AbstractUnitOfWork,
    clock: Clock = datetime.now,
) -> bool:
    """
    Retire une entrée des menus de sélection.

    Les mouvements qui la référencent restent dans le journal.
    """
    _vérifier_commande_catalogue(cmd)
    with uow:
        inventaire = _obtenir_ou_créer(uow, cmd.ref)
        modifié = inventaire.retirer_du_catalogue(
            cmd.kind, cmd.name, cmd.parent, jour=clock().date()
        )
        uow.commit()
    return modifié


def acquitter_rupture(
    cmd: commands.AcknowledgeOutOfStock,
    uow: AbstractUnitOfWork,
    clock: Clock = datetime.now,
) -> None:
    with uow:
        inventaire = uow.inventaires.get(réf=cmd.ref)
        if inventaire is None:
            raise InventaireInconnu(f"Inventaire inconnu : {cmd.ref}")
        inventaire.acquitter(cmd.item, cmd.type, jour=clock().date())
        uow.commit()


def effacer_notifications(
    cmd: commands.ClearNotifications,
    uow: AbstractUnitOfWork,
) -> None:
    with uow:
        inventaire = uow.inventaires.get(réf=cmd.ref)
        if inventaire is not None:
            inventaire.effacer_notifications()
            uow.commit()


def appliquer_instantané(
    cmd: commands.ApplySnapshot,
    uow: AbstractUnitOfWork,
    clock: Clock = datetime.now,
) -> None:
    """
    Applique un instantané du journal distant.

    Remplacement en bloc, jamais de fusion : l'instantané le plus
    récent l'emporte sur la vue locale.
    """
    maintenant = clock()
    with uow:
        inventaire = _obtenir_ou_créer(uow, cmd.ref)
        inventaire.remplacer_journal(
            cmd.events, cmd.sources, jour=maintenant.date(), maintenant=_en_ms(maintenant)
        )
        uow.commit()
    logger.debug("Instantané appliqué à %s : %d mouvements", cmd.ref, len(cmd.events))


def changer_de_jour(
    cmd: commands.RollOverDay,
    uow: AbstractUnitOfWork,
    clock: Clock = datetime.now,
) -> None:
    """Fait tomber les acquittements qui ne datent pas d'aujourd'hui."""
    jour = cmd.today or clock().date()
    with uow:
        inventaire = uow.inventaires.get(réf=cmd.ref)
        if inventaire is None:
            return
        inventaire.changer_de_jour(jour=jour)
        uow.commit()


# --- Event Handlers ---


def publier_mouvement(
    event: events.StockRecorded,
    event_store: Optional[AbstractEventStore] = None,
) -> None:
    """
    Pousse le mouvement vers le journal distant, s'il y en a un.

    Fire-and-forget : un échec est loggé par le bus et n'annule
    pas le mouvement déjà journalisé localement.
    """
    if event_store is None:
        return
    event_store.append(
        model.Mouvement(
            id=event.id,
            article=event.item,
            type=event.type,
            quantité=event.qty,
            sens=event.direction,
            horodatage=event.at,
            fournisseur=event.source,
            prix=event.price,
            facture=event.invoice,
        )
    )
    logger.info(
        "Mouvement publié : %s %s/%s (quantité: %d)",
        event.direction, event.item, event.type, event.qty,
    )


def envoyer_alerte_rupture(
    event: events.OutOfStock,
    notifications: AbstractNotifications,
    alert_recipient: str = "stock@example.com",
) -> None:
    """Envoie une alerte quand un couple tombe à zéro."""
    notifications.send(
        destination=alert_recipient,
        message=f"Out of stock: {event.item} • {event.type}",
    )


def journaliser_changement_catalogue(event: events.CatalogChanged) -> None:
    logger.info(
        "Catalogue %s : %s %s%s",
        event.action, event.kind, f"{event.parent}/" if event.parent else "", event.name,
    )
