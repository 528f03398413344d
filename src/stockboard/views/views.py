"""
Views (lecture) pour le pattern CQRS.

Les views sont des fonctions de lecture pure : elles ne modifient
jamais l'inventaire. Tout ce qu'elles renvoient est recalculé à
partir du journal au moment de la lecture. Les clés des lignes
renvoyées (`item`, `qty`, `direction`...) forment le contrat de l'API.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta
from typing import Optional

from stockboard.domain import model
from stockboard.service_layer import unit_of_work


def _ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _correspond(article: str, recherche: Optional[str]) -> bool:
    recherche = (recherche or "").strip().lower()
    return not recherche or recherche in article.lower()


def niveaux_de_stock(
    uow: unit_of_work.AbstractUnitOfWork,
    réf: str = model.RÉF_PAR_DÉFAUT,
    recherche: Optional[str] = None,
) -> list[dict]:
    """
    Tableau du stock total : un couple (article, type) par ligne,
    avec la date du dernier mouvement dans chaque sens.
    """
    with uow:
        inventaire = uow.inventaires.get(réf)
        if inventaire is None:
            return []
        dernier: dict[tuple[str, str, str], int] = {}
        for m in inventaire.journal:
            clé = (m.article, m.type, m.sens)
            dernier[clé] = max(dernier.get(clé, 0), m.horodatage)
        return [
            {
                "item": article,
                "type": type,
                "qty": inventaire.niveau_actuel(article, type),
                "last_in": dernier.get((article, type, model.ENTRÉE)),
                "last_out": dernier.get((article, type, model.SORTIE)),
            }
            for article, type in inventaire.couples_suivis()
            if _correspond(article, recherche)
        ]


def historique(
    sens: str,
    uow: unit_of_work.AbstractUnitOfWork,
    réf: str = model.RÉF_PAR_DÉFAUT,
    recherche: Optional[str] = None,
) -> list[dict]:
    """Mouvements d'un sens, du plus récent au plus ancien."""
    with uow:
        inventaire = uow.inventaires.get(réf)
        if inventaire is None:
            return []
        lignes = [
            _ligne(m) for m in inventaire.journal
            if m.sens == sens and _correspond(m.article, recherche)
        ]
    return sorted(lignes, key=lambda l: l["at"], reverse=True)


def indicateurs(uow: unit_of_work.AbstractUnitOfWork, réf: str = model.RÉF_PAR_DÉFAUT) -> dict:
    """
    Indicateurs du tableau de bord : % d'entrées, total sorti, couples vides.

    Le pourcentage est arrondi à l'entier le plus proche, demi vers le haut.
    """
    with uow:
        inventaire = uow.inventaires.get(réf)
        if inventaire is None:
            return {"pct_in": 0, "total_out": 0, "empty_count": 0}
        total_entré = sum(m.quantité for m in inventaire.journal if m.sens == model.ENTRÉE)
        total_sorti = sum(m.quantité for m in inventaire.journal if m.sens == model.SORTIE)
        vides = sum(
            1 for article, type in inventaire.couples_suivis()
            if inventaire.niveau_actuel(article, type) == 0
        )
    total = total_entré + total_sorti
    return {
        "pct_in": math.floor(total_entré * 100 / total + 0.5) if total else 0,
        "total_out": total_sorti,
        "empty_count": vides,
    }


def rapport(
    uow: unit_of_work.AbstractUnitOfWork,
    réf: str = model.RÉF_PAR_DÉFAUT,
    du: Optional[date] = None,
    au: Optional[date] = None,
    fournisseur: Optional[str] = None,
    sens: Optional[str] = None,
) -> list[dict]:
    """
    Lignes de rapport sur une période, bornes incluses.

    `au` couvre la journée entière. Les mouvements d'entrées
    retirées du catalogue sont toujours inclus : l'historique ne
    dépend pas des menus de sélection.
    """
    début = _ms(datetime.combine(du, time.min)) if du else None
    fin = _ms(datetime.combine(au + timedelta(days=1), time.min)) if au else None
    with uow:
        inventaire = uow.inventaires.get(réf)
        if inventaire is None:
            return []
        return [
            _ligne(m) for m in inventaire.journal
            if (sens is None or m.sens == sens)
            and (début is None or m.horodatage >= début)
            and (fin is None or m.horodatage < fin)
            and (fournisseur is None or m.fournisseur == fournisseur)
        ]


def rapport_fournisseur(
    uow: unit_of_work.AbstractUnitOfWork,
    réf: str = model.RÉF_PAR_DÉFAUT,
    du: Optional[date] = None,
    au: Optional[date] = None,
    fournisseur: Optional[str] = None,
) -> list[dict]:
    """Rapport fournisseurs : uniquement les entrées en stock."""
    return rapport(uow, réf, du, au, fournisseur, sens=model.ENTRÉE)


def sélection(uow: unit_of_work.AbstractUnitOfWork, réf: str = model.RÉF_PAR_DÉFAUT) -> dict:
    with uow:
        inventaire = uow.inventaires.get(réf)
        if inventaire is None:
            return {"items": [], "types": {}, "sources": []}
        articles = inventaire.articles_sélectionnables()
        return {
            "items": articles,
            "types": {a: inventaire.types_sélectionnables(a) for a in articles},
            "sources": inventaire.fournisseurs_sélectionnables(),
        }


def messages(uow: unit_of_work.AbstractUnitOfWork, réf: str = model.RÉF_PAR_DÉFAUT) -> list[dict]:
    with uow:
        inventaire = uow.inventaires.get(réf)
        if inventaire is None:
            return []
        return [
            {"item": m.article, "type": m.type, "text": m.texte, "at": m.horodatage}
            for m in inventaire.messages_de_rupture()
        ]


def notifications(
    uow: unit_of_work.AbstractUnitOfWork, réf: str = model.RÉF_PAR_DÉFAUT
) -> list[dict]:
    with uow:
        inventaire = uow.inventaires.get(réf)
        if inventaire is None:
            return []
        return [
            {"id": n.id, "text": n.texte, "direction": n.sens, "at": n.horodatage}
            for n in inventaire.notifications
        ]


def _ligne(m: model.Mouvement) -> dict:
    return {
        "id": m.id,
        "at": m.horodatage,
        "item": m.article,
        "type": m.type,
        "qty": m.quantité,
        "direction": m.sens,
        "source": m.fournisseur,
        "invoice": m.facture,
        "price": m.prix,
    }
