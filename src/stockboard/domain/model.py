"""
Modèle de domaine de l'inventaire.

L'agrégat Inventaire possède le journal des mouvements de stock
(append-only) et tout ce qui en dérive : niveaux de stock, catalogues
sélectionnables, notifications et messages de rupture de stock.

Les niveaux ne sont jamais stockés : ils sont recalculés à partir du
journal à chaque lecture, ce qui garantit qu'ils ne peuvent pas
diverger des mouvements enregistrés.
"""

from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, Iterator, Optional

from stockboard.domain import events

logger = logging.getLogger(__name__)

ENTRÉE = "in"
SORTIE = "out"
SENS = (ENTRÉE, SORTIE)

ARTICLE = "item"
TYPE = "type"
FOURNISSEUR = "source"
NATURES = (ARTICLE, TYPE, FOURNISSEUR)

RÉF_PAR_DÉFAUT = "main"
PLAFOND_NOTIFICATIONS = 25


class NatureInconnue(Exception):
    """Levée quand une nature d'entrée de catalogue inconnue est demandée."""
    pass


def maintenant_ms() -> int:
    return int(time.time() * 1000)


def nouvel_identifiant(horodatage: int) -> str:
    """Identifiant unique : horodatage + 5 caractères aléatoires en base 36."""
    suffixe = "".join(random.choices(string.ascii_lowercase + string.digits, k=5))
    return f"{horodatage}-{suffixe}"


@dataclass(unsafe_hash=True)
class Mouvement:
    """
    Value Object représentant un mouvement de stock.

    Un mouvement n'est jamais modifié ni supprimé une fois journalisé.
    Le sens et la quantité déterminent sa contribution signée
    au niveau de stock du couple (article, type).
    """

    id: str
    article: str
    type: str
    quantité: int
    sens: str
    horodatage: int
    fournisseur: Optional[str] = None
    prix: Optional[float] = None
    facture: Optional[str] = None

    @property
    def quantité_signée(self) -> int:
        return self.quantité if self.sens == ENTRÉE else -self.quantité

    @property
    def couple(self) -> tuple[str, str]:
        return (self.article, self.type)


@dataclass(unsafe_hash=True)
class Notification:
    """Trace informative d'un mouvement, sans effet sur le stock."""

    id: str
    texte: str
    sens: str
    horodatage: int


@dataclass(unsafe_hash=True)
class MessageDeRupture:
    """Message de rupture : existe tant que le couple est à zéro."""

    article: str
    type: str
    texte: str
    horodatage: int

    @property
    def couple(self) -> tuple[str, str]:
        return (self.article, self.type)


@dataclass(unsafe_hash=True)
class Acquittement:
    """Un message de rupture acquitté par l'utilisateur pour le jour `jour`."""

    article: str
    type: str
    jour: date

    @property
    def couple(self) -> tuple[str, str]:
        return (self.article, self.type)


class EntréeCatalogue:
    """
    Entrée de catalogue (article, type ou fournisseur).

    `déclarée` : l'utilisateur a explicitement ajouté ce nom.
    `exclue` : le nom a été retiré des menus (suppression logique).
    Les deux drapeaux sont indépendants ; l'exclusion l'emporte toujours
    à la lecture. `parent` est l'article propriétaire pour un type.
    """

    def __init__(
        self,
        nature: str,
        nom: str,
        parent: str = "",
        déclarée: bool = False,
        exclue: bool = False,
    ):
        self.nature = nature
        self.nom = nom
        self.parent = parent
        self.déclarée = déclarée
        self.exclue = exclue

    def __repr__(self) -> str:
        return f"<EntréeCatalogue {self.nature}:{self.parent}/{self.nom}>"

    def correspond(self, nature: str, nom: str, parent: str = "") -> bool:
        return self.nature == nature and self.nom == nom and self.parent == parent


class Inventaire:
    """
    Agrégat racine de l'inventaire.

    Toutes les mutations passent par cet agrégat, qui relance la
    réconciliation des messages de rupture après chaque changement
    et émet les événements du domaine.
    """

    def __init__(
        self,
        réf: str = RÉF_PAR_DÉFAUT,
        journal: Optional[list[Mouvement]] = None,
        catalogue: Optional[list[EntréeCatalogue]] = None,
        notifications: Optional[list[Notification]] = None,
        alertes: Optional[list[MessageDeRupture]] = None,
        acquittements: Optional[list[Acquittement]] = None,
        numéro_version: int = 0,
    ):
        self.réf = réf
        self.journal = journal or []
        self.catalogue = catalogue or []
        self.notifications = notifications or []
        self.alertes = alertes or []
        self.acquittements = acquittements or []
        self.numéro_version = numéro_version
        self.événements: list[events.Event] = []

    def __repr__(self) -> str:
        return f"<Inventaire {self.réf}>"

    # --- Mouvements ---

    def enregistrer(
        self,
        article: str,
        type: str,
        quantité: int,
        sens: str,
        fournisseur: Optional[str] = None,
        prix: Optional[float] = None,
        facture: Optional[str] = None,
        horodatage: Optional[int] = None,
        jour: Optional[date] = None,
    ) -> Optional[Mouvement]:
        """
        Journalise un mouvement de stock.

        Une saisie invalide (nom vide, quantité non positive) est ignorée
        et renvoie None. Le niveau dérivé change en même temps que
        l'ajout au journal puisqu'il est recalculé à partir de celui-ci.
        """
        article = (article or "").strip()
        type = (type or "").strip()
        if not article or not type or sens not in SENS:
            logger.debug("Mouvement ignoré : %r/%r (%s)", article, type, sens)
            return None
        if quantité is None or quantité <= 0:
            logger.debug("Quantité ignorée pour %s/%s : %r", article, type, quantité)
            return None

        horodatage = maintenant_ms() if horodatage is None else horodatage
        fournisseur = fournisseur or None
        facture = facture or None
        mouvement = Mouvement(
            id=nouvel_identifiant(horodatage),
            article=article,
            type=type,
            quantité=quantité,
            sens=sens,
            horodatage=horodatage,
            fournisseur=fournisseur,
            prix=prix,
            facture=facture,
        )
        self.journal.append(mouvement)

        if fournisseur and self._trouver(FOURNISSEUR, fournisseur) is None:
            self.catalogue.append(EntréeCatalogue(FOURNISSEUR, fournisseur, déclarée=True))

        self._notifier(mouvement)
        self.numéro_version += 1
        self.événements.append(
            events.StockRecorded(
                ref=self.réf,
                id=mouvement.id,
                item=article,
                type=type,
                qty=quantité,
                direction=sens,
                at=horodatage,
                source=fournisseur,
                price=prix,
                invoice=facture,
            )
        )
        self.réconcilier(jour=jour, maintenant=horodatage)
        return mouvement

    def _notifier(self, mouvement: Mouvement) -> None:
        if mouvement.sens == ENTRÉE:
            texte = " • ".join([
                "Stock In",
                mouvement.article,
                mouvement.type,
                str(mouvement.quantité),
                mouvement.fournisseur or "",
                "" if mouvement.prix is None else str(mouvement.prix),
            ])
        else:
            texte = " • ".join([
                "Stock Out", mouvement.article, mouvement.type, str(mouvement.quantité),
            ])
        self.notifications.insert(
            0,
            Notification(
                id=f"n-{mouvement.id}",
                texte=texte,
                sens=mouvement.sens,
                horodatage=mouvement.horodatage,
            ),
        )
        # Les plus anciennes sont évincées au-delà du plafond
        del self.notifications[PLAFOND_NOTIFICATIONS:]

    def effacer_notifications(self) -> None:
        del self.notifications[:]

    def remplacer_journal(
        self,
        mouvements: Iterable[Mouvement],
        fournisseurs: Optional[Iterable[str]] = None,
        jour: Optional[date] = None,
        maintenant: Optional[int] = None,
    ) -> None:
        """
        Remplace intégralement le journal par un instantané distant.

        Pas de fusion : le dernier instantané reçu l'emporte. Les
        mouvements déjà connus (même identifiant) sont réutilisés tels quels.
        """
        connus = {m.id: m for m in self.journal}
        reçus = []
        for mouvement in mouvements:
            if mouvement.id in connus:
                reçus.append(connus[mouvement.id])
            else:
                reçus.append(replace(mouvement))
        self.journal = reçus

        if fournisseurs is not None:
            voulus = set(fournisseurs)
            for entrée in self.catalogue:
                if entrée.nature == FOURNISSEUR:
                    entrée.déclarée = entrée.nom in voulus
            for nom in sorted(voulus):
                if nom and self._trouver(FOURNISSEUR, nom) is None:
                    self.catalogue.append(EntréeCatalogue(FOURNISSEUR, nom, déclarée=True))

        self.numéro_version += 1
        self.réconcilier(jour=jour, maintenant=maintenant)

    # --- Catalogue ---

    def _trouver(self, nature: str, nom: str, parent: str = "") -> Optional[EntréeCatalogue]:
        return next((e for e in self.catalogue if e.correspond(nature, nom, parent)), None)

    def _est_exclue(self, nature: str, nom: str, parent: str = "") -> bool:
        entrée = self._trouver(nature, nom, parent)
        return entrée is not None and entrée.exclue

    @staticmethod
    def _vérifier_entrée(nature: str, nom: str, parent: str) -> tuple[str, str]:
        if nature not in NATURES:
            raise NatureInconnue(f"Nature d'entrée inconnue : {nature}")
        nom = (nom or "").strip()
        parent = (parent or "").strip() if nature == TYPE else ""
        return nom, parent

    def ajouter_au_catalogue(
        self, nature: str, nom: str, parent: str = "", jour: Optional[date] = None
    ) -> bool:
        """
        Déclare un nom dans le catalogue (idempotent).

        Une nouvelle déclaration lève une éventuelle exclusion antérieure.
        Un type doit être rattaché à un article. Retourne True si
        le catalogue a changé.
        """
        nom, parent = self._vérifier_entrée(nature, nom, parent)
        if not nom or (nature == TYPE and not parent):
            return False

        entrée = self._trouver(nature, nom, parent)
        if entrée is None:
            self.catalogue.append(EntréeCatalogue(nature, nom, parent, déclarée=True))
        elif entrée.déclarée and not entrée.exclue:
            return False
        else:
            entrée.déclarée = True
            entrée.exclue = False

        self._catalogue_modifié(nature, nom, parent, "added", jour)
        return True

    def retirer_du_catalogue(
        self, nature: str, nom: str, parent: str = "", jour: Optional[date] = None
    ) -> bool:
        """
        Retire un nom des menus de sélection (suppression logique).

        Le journal n'est jamais touché : l'historique d'un nom retiré
        reste intégralement disponible pour les rapports.
        """
        nom, parent = self._vérifier_entrée(nature, nom, parent)
        if not nom or (nature == TYPE and not parent):
            return False

        entrée = self._trouver(nature, nom, parent)
        if entrée is None:
            self.catalogue.append(EntréeCatalogue(nature, nom, parent, exclue=True))
        elif entrée.exclue:
            return False
        else:
            entrée.exclue = True

        self._catalogue_modifié(nature, nom, parent, "removed", jour)
        return True

    def _catalogue_modifié(
        self, nature: str, nom: str, parent: str, action: str, jour: Optional[date]
    ) -> None:
        self.numéro_version += 1
        self.événements.append(
            events.CatalogChanged(ref=self.réf, kind=nature, name=nom, parent=parent, action=action)
        )
        self.réconcilier(jour=jour)

    def articles_sélectionnables(self) -> list[str]:
        noms = {m.article for m in self.journal}
        for entrée in self.catalogue:
            if entrée.déclarée and entrée.nature == ARTICLE:
                noms.add(entrée.nom)
            elif entrée.déclarée and entrée.nature == TYPE:
                noms.add(entrée.parent)
        return sorted(n for n in noms if not self._est_exclue(ARTICLE, n))

    def types_sélectionnables(self, article: str) -> list[str]:
        if self._est_exclue(ARTICLE, article):
            return []
        noms = {m.type for m in self.journal if m.article == article}
        noms.update(
            e.nom for e in self.catalogue
            if e.déclarée and e.nature == TYPE and e.parent == article
        )
        return sorted(n for n in noms if not self._est_exclue(TYPE, n, article))

    def fournisseurs_sélectionnables(self) -> list[str]:
        noms = {m.fournisseur for m in self.journal if m.fournisseur}
        noms.update(e.nom for e in self.catalogue if e.déclarée and e.nature == FOURNISSEUR)
        return sorted(n for n in noms if not self._est_exclue(FOURNISSEUR, n))

    def couples_suivis(self) -> Iterator[tuple[str, str]]:
        """Tous les couples (article, type) encore proposés à la sélection."""
        for article in self.articles_sélectionnables():
            for type in self.types_sélectionnables(article):
                yield (article, type)

    # --- Niveaux dérivés ---

    def niveaux_nets(self) -> dict[tuple[str, str], int]:
        """Totaux courants non planchers, tels que journalisés."""
        niveaux: dict[tuple[str, str], int] = {}
        for mouvement in self.journal:
            niveaux[mouvement.couple] = niveaux.get(mouvement.couple, 0) + mouvement.quantité_signée
        return niveaux

    def niveau_net(self, article: str, type: str) -> int:
        return sum(m.quantité_signée for m in self.journal if m.couple == (article, type))

    def niveau_actuel(self, article: str, type: str) -> int:
        """Niveau affiché : jamais négatif, même si une sortie a excédé le stock."""
        return max(0, self.niveau_net(article, type))

    # --- Messages de rupture ---

    def acquitter(self, article: str, type: str, jour: Optional[date] = None) -> None:
        """Acquitte le message de rupture d'un couple pour la journée."""
        jour = jour or date.today()
        if not any(a.couple == (article, type) and a.jour == jour for a in self.acquittements):
            self.acquittements.append(Acquittement(article=article, type=type, jour=jour))
        self.réconcilier(jour=jour)

    def changer_de_jour(self, jour: Optional[date] = None) -> None:
        """Changement de jour : les acquittements de la veille tombent."""
        jour = jour or date.today()
        for acquittement in [a for a in self.acquittements if a.jour != jour]:
            self.acquittements.remove(acquittement)
        self.réconcilier(jour=jour)

    def réconcilier(self, jour: Optional[date] = None, maintenant: Optional[int] = None) -> None:
        """
        Passe de réconciliation complète des messages de rupture.

        Un message existe si et seulement si le couple est suivi, que son
        niveau est à zéro et qu'il n'a pas été acquitté aujourd'hui.
        Un acquittement ne survit pas à un passage au-dessus de zéro.
        """
        jour = jour or date.today()
        maintenant = maintenant_ms() if maintenant is None else maintenant
        niveaux = self.niveaux_nets()

        for acquittement in [a for a in self.acquittements if niveaux.get(a.couple, 0) > 0]:
            self.acquittements.remove(acquittement)

        acquittés = {a.couple for a in self.acquittements if a.jour == jour}
        à_zéro = {
            couple for couple in self.couples_suivis()
            if niveaux.get(couple, 0) <= 0 and couple not in acquittés
        }

        for message in [m for m in self.alertes if m.couple not in à_zéro]:
            self.alertes.remove(message)

        existants = {m.couple for m in self.alertes}
        for article, type in sorted(à_zéro - existants):
            self.alertes.append(
                MessageDeRupture(
                    article=article,
                    type=type,
                    texte=f"Out of stock: {article} • {type}",
                    horodatage=maintenant,
                )
            )
            self.événements.append(events.OutOfStock(ref=self.réf, item=article, type=type))

    def messages_de_rupture(self) -> list[MessageDeRupture]:
        return sorted(self.alertes, key=lambda m: m.horodatage, reverse=True)
