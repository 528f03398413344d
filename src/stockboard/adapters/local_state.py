"""
Persistance locale de l'état complet dans un fichier JSON.

C'est la variante « stockage local » : l'état sérialisé de chaque
inventaire est chargé et sauvegardé d'un bloc, sous une clé fixe.
Un fichier absent ou corrompu ramène au jeu de données par défaut.
Les clés JSON (`events`, `kind`, `acknowledged`...) sont celles du
format d'origine et ne suivent pas les noms du domaine.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Optional

from stockboard.adapters.repository import AbstractRepository
from stockboard.domain import model

logger = logging.getLogger(__name__)

STORAGE_KEY = "inv-dashboard-state-v1"

DAY_MS = 1000 * 60 * 60 * 24


def default_inventory(
    réf: str = model.RÉF_PAR_DÉFAUT, maintenant: Optional[int] = None
) -> model.Inventaire:
    """Jeu de données de démonstration utilisé au premier lancement."""
    maintenant = model.maintenant_ms() if maintenant is None else maintenant
    catalogue = [
        model.EntréeCatalogue(model.ARTICLE, "Boxes", déclarée=True),
        model.EntréeCatalogue(model.ARTICLE, "Tapes", déclarée=True),
        model.EntréeCatalogue(model.ARTICLE, "Gloves", déclarée=True),
    ]
    for article, types in (
        ("Boxes", ("Small", "Medium", "Large")),
        ("Tapes", ("Clear", "Brown")),
        ("Gloves", ("Latex", "Nitrile")),
    ):
        catalogue.extend(
            model.EntréeCatalogue(model.TYPE, t, article, déclarée=True) for t in types
        )
    catalogue.extend([
        model.EntréeCatalogue(model.FOURNISSEUR, "Warehouse", déclarée=True),
        model.EntréeCatalogue(model.FOURNISSEUR, "Supplier", déclarée=True),
    ])
    journal = [
        model.Mouvement(
            "e1", "Boxes", "Small", 20, model.ENTRÉE, maintenant - 5 * DAY_MS, "Warehouse", 100.0
        ),
        model.Mouvement("e2", "Boxes", "Small", 10, model.SORTIE, maintenant - 4 * DAY_MS),
        model.Mouvement(
            "e3", "Tapes", "Clear", 10, model.ENTRÉE, maintenant - 3 * DAY_MS, "Supplier", 50.0
        ),
        model.Mouvement("e4", "Gloves", "Latex", 10, model.SORTIE, maintenant - 2 * DAY_MS),
    ]
    inventaire = model.Inventaire(réf=réf, journal=journal, catalogue=catalogue)
    inventaire.réconcilier(maintenant=maintenant)
    # Les ruptures du jeu de démonstration ne sont pas des faits nouveaux
    inventaire.événements.clear()
    return inventaire


# --- Sérialisation ---


def dump_inventory(inventaire: model.Inventaire) -> dict[str, Any]:
    return {
        "ref": inventaire.réf,
        "version_number": inventaire.numéro_version,
        "events": [
            {
                "id": m.id,
                "item": m.article,
                "type": m.type,
                "qty": m.quantité,
                "kind": m.sens,
                "at": m.horodatage,
                "source": m.fournisseur,
                "price": m.prix,
                "invoice": m.facture,
            }
            for m in inventaire.journal
        ],
        "catalog": [
            {
                "kind": e.nature,
                "name": e.nom,
                "parent": e.parent,
                "declared": e.déclarée,
                "excluded": e.exclue,
            }
            for e in inventaire.catalogue
        ],
        "notifications": [
            {"id": n.id, "text": n.texte, "kind": n.sens, "at": n.horodatage}
            for n in inventaire.notifications
        ],
        "messages": [
            {"item": m.article, "type": m.type, "text": m.texte, "at": m.horodatage}
            for m in inventaire.alertes
        ],
        "acknowledged": [
            {"item": a.article, "type": a.type, "day": a.jour.isoformat()}
            for a in inventaire.acquittements
        ],
    }


def load_inventory(data: dict[str, Any]) -> model.Inventaire:
    """Reconstruit un Inventaire ; lève KeyError/ValueError/TypeError si `data` est invalide."""
    return model.Inventaire(
        réf=data["ref"],
        numéro_version=int(data.get("version_number", 0)),
        journal=[
            model.Mouvement(
                id=e["id"],
                article=e["item"],
                type=e["type"],
                quantité=e["qty"],
                sens=e["kind"],
                horodatage=e["at"],
                fournisseur=e.get("source"),
                prix=e.get("price"),
                facture=e.get("invoice"),
            )
            for e in data.get("events", [])
        ],
        catalogue=[
            model.EntréeCatalogue(
                c["kind"], c["name"], c.get("parent", ""),
                déclarée=bool(c.get("declared")), exclue=bool(c.get("excluded")),
            )
            for c in data.get("catalog", [])
        ],
        notifications=[
            model.Notification(id=n["id"], texte=n["text"], sens=n["kind"], horodatage=n["at"])
            for n in data.get("notifications", [])
        ],
        alertes=[
            model.MessageDeRupture(
                article=m["item"], type=m["type"], texte=m["text"], horodatage=m["at"]
            )
            for m in data.get("messages", [])
        ],
        acquittements=[
            model.Acquittement(
                article=a["item"], type=a["type"], jour=date.fromisoformat(a["day"])
            )
            for a in data.get("acknowledged", [])
        ],
    )


def read_state(path: Path, key: str = STORAGE_KEY) -> Optional[dict[str, Any]]:
    """
    Lit l'état sérialisé ; None si le fichier est absent ou illisible.

    Le contenu attendu est `{clé: {réf: inventaire}}`.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, ValueError):
        logger.exception("État local illisible dans %s, retour aux valeurs par défaut", path)
        return None
    state = raw.get(key) if isinstance(raw, dict) else None
    if not isinstance(state, dict):
        logger.warning("Clé %s absente de %s, retour aux valeurs par défaut", key, path)
        return None
    return state


def write_state(path: Path, state: dict[str, Any], key: str = STORAGE_KEY) -> None:
    """Sauvegarde l'état complet ; les erreurs d'écriture sont loggées puis ignorées."""
    try:
        Path(path).write_text(json.dumps({key: state}, ensure_ascii=False), encoding="utf-8")
    except OSError:
        logger.exception("Impossible de sauvegarder l'état local dans %s", path)


class LocalStateRepository(AbstractRepository):
    """
    Repository adossé à l'état JSON chargé par le Unit of Work.

    `state` vaut None quand le fichier est absent ou corrompu : chaque
    référence demandée est alors initialisée avec le jeu par défaut.
    """

    def __init__(self, state: Optional[dict[str, Any]]):
        super().__init__()
        self._state = state
        self._inventaires: dict[str, model.Inventaire] = {}

    def _add(self, inventaire: model.Inventaire) -> None:
        self._inventaires[inventaire.réf] = inventaire

    def _get(self, réf: str) -> model.Inventaire | None:
        if réf in self._inventaires:
            return self._inventaires[réf]
        if self._state is None:
            inventaire = default_inventory(réf)
        elif réf in self._state:
            try:
                inventaire = load_inventory(self._state[réf])
            except (KeyError, ValueError, TypeError):
                logger.exception("Inventaire %s corrompu, retour aux valeurs par défaut", réf)
                inventaire = default_inventory(réf)
        else:
            return None
        self._inventaires[réf] = inventaire
        return inventaire

    def dump(self) -> dict[str, Any]:
        state = dict(self._state or {})
        for réf, inventaire in self._inventaires.items():
            state[réf] = dump_inventory(inventaire)
        return state
