"""
Tests unitaires du modèle de domaine.

Ces tests vérifient le comportement de l'agrégat Inventaire
en isolation complète, sans base de données ni I/O.
"""

from datetime import date, timedelta

import pytest

from stockboard.domain import events
from stockboard.domain.model import (
    ARTICLE,
    ENTRÉE,
    FOURNISSEUR,
    PLAFOND_NOTIFICATIONS,
    SORTIE,
    TYPE,
    Inventaire,
    NatureInconnue,
)

TODAY = date(2026, 3, 14)
TOMORROW = TODAY + timedelta(days=1)


def niveau_recalculé(inventaire: Inventaire, article: str, type: str) -> int:
    couple = (article, type)
    entré = sum(m.quantité for m in inventaire.journal if m.couple == couple and m.sens == ENTRÉE)
    sorti = sum(m.quantité for m in inventaire.journal if m.couple == couple and m.sens == SORTIE)
    return max(0, entré - sorti)


def paires_en_rupture(inventaire: Inventaire) -> set[tuple[str, str]]:
    return {m.couple for m in inventaire.alertes}


# --- Mouvements et niveaux ---


class TestNiveaux:
    def test_entrée_puis_sortie_complète(self):
        inventaire = Inventaire()

        inventaire.enregistrer("Boxes", "Small", 50, ENTRÉE, jour=TODAY)
        assert inventaire.niveau_actuel("Boxes", "Small") == 50

        inventaire.enregistrer("Boxes", "Small", 50, SORTIE, jour=TODAY)
        assert inventaire.niveau_actuel("Boxes", "Small") == 0
        assert ("Boxes", "Small") in paires_en_rupture(inventaire)

    def test_quantité_négative_ignorée(self):
        inventaire = Inventaire()

        assert inventaire.enregistrer("Tape", "Clear", -5, ENTRÉE, jour=TODAY) is None

        assert len(inventaire.journal) == 0
        assert inventaire.notifications == []

    @pytest.mark.parametrize("article, type", [("", "Clear"), ("Tape", ""), ("  ", "Clear")])
    def test_nom_vide_ignoré(self, article, type):
        inventaire = Inventaire()

        assert inventaire.enregistrer(article, type, 5, ENTRÉE, jour=TODAY) is None
        assert len(inventaire.journal) == 0

    def test_niveau_affiché_jamais_négatif(self):
        """La sortie excédentaire est journalisée telle quelle, seul l'affichage est plancher."""
        inventaire = Inventaire()
        inventaire.enregistrer("Gloves", "Latex", 5, ENTRÉE, jour=TODAY)
        inventaire.enregistrer("Gloves", "Latex", 12, SORTIE, jour=TODAY)

        assert inventaire.niveau_actuel("Gloves", "Latex") == 0
        assert inventaire.niveau_net("Gloves", "Latex") == -7
        assert len(inventaire.journal) == 2

    def test_le_niveau_égale_toujours_le_recalcul(self):
        inventaire = Inventaire()
        mouvements = [
            ("Boxes", "Small", 20, ENTRÉE),
            ("Boxes", "Large", 7, ENTRÉE),
            ("Boxes", "Small", 5, SORTIE),
            ("Tapes", "Clear", 3, SORTIE),
            ("Boxes", "Small", 40, SORTIE),
            ("Boxes", "Small", 9, ENTRÉE),
        ]
        for article, type, quantité, sens in mouvements:
            inventaire.enregistrer(article, type, quantité, sens, jour=TODAY)
            for couple in {(m[0], m[1]) for m in mouvements}:
                assert inventaire.niveau_actuel(*couple) == niveau_recalculé(inventaire, *couple)

    def test_chaque_mouvement_a_un_identifiant_unique(self):
        inventaire = Inventaire()
        for _ in range(20):
            inventaire.enregistrer("Boxes", "Small", 1, ENTRÉE, horodatage=1_000, jour=TODAY)

        assert len({m.id for m in inventaire.journal}) == 20

    def test_enregistrer_émet_stock_recorded(self):
        inventaire = Inventaire(réf="shop")

        mouvement = inventaire.enregistrer(
            "Boxes", "Small", 3, ENTRÉE, fournisseur="Warehouse", prix=9.5, facture="F-1",
            horodatage=42, jour=TODAY,
        )

        assert inventaire.événements[0] == events.StockRecorded(
            ref="shop", id=mouvement.id, item="Boxes", type="Small", qty=3,
            direction=ENTRÉE, at=42, source="Warehouse", price=9.5, invoice="F-1",
        )

    def test_incrémente_le_numéro_de_version(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 3, ENTRÉE, jour=TODAY)

        assert inventaire.numéro_version == 1


# --- Notifications ---


class TestNotifications:
    def test_texte_des_notifications(self):
        inventaire = Inventaire()
        inventaire.enregistrer(
            "Boxes", "Small", 3, ENTRÉE, fournisseur="Warehouse", prix=2.5, jour=TODAY
        )
        inventaire.enregistrer("Boxes", "Small", 1, SORTIE, jour=TODAY)

        assert [n.texte for n in inventaire.notifications] == [
            "Stock Out • Boxes • Small • 1",
            "Stock In • Boxes • Small • 3 • Warehouse • 2.5",
        ]

    def test_les_plus_anciennes_sont_évincées(self):
        inventaire = Inventaire()
        for i in range(PLAFOND_NOTIFICATIONS + 5):
            inventaire.enregistrer("Boxes", "Small", 1, ENTRÉE, horodatage=i, jour=TODAY)

        assert len(inventaire.notifications) == PLAFOND_NOTIFICATIONS
        assert inventaire.notifications[0].horodatage == PLAFOND_NOTIFICATIONS + 4
        assert len(inventaire.journal) == PLAFOND_NOTIFICATIONS + 5

    def test_effacer_les_notifications(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 1, ENTRÉE, jour=TODAY)

        inventaire.effacer_notifications()

        assert inventaire.notifications == []
        assert len(inventaire.journal) == 1


# --- Catalogue ---


class TestCatalogue:
    def test_un_article_journalisé_est_sélectionnable(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 1, ENTRÉE, jour=TODAY)

        assert inventaire.articles_sélectionnables() == ["Boxes"]
        assert inventaire.types_sélectionnables("Boxes") == ["Small"]

    def test_une_entrée_déclarée_inutilisée_est_sélectionnable(self):
        inventaire = Inventaire()
        inventaire.ajouter_au_catalogue(ARTICLE, "Tapes", jour=TODAY)
        inventaire.ajouter_au_catalogue(TYPE, "Brown", "Tapes", jour=TODAY)
        inventaire.ajouter_au_catalogue(FOURNISSEUR, "Supplier", jour=TODAY)

        assert inventaire.articles_sélectionnables() == ["Tapes"]
        assert inventaire.types_sélectionnables("Tapes") == ["Brown"]
        assert inventaire.fournisseurs_sélectionnables() == ["Supplier"]

    def test_ajout_idempotent(self):
        inventaire = Inventaire()

        assert inventaire.ajouter_au_catalogue(ARTICLE, "Tapes", jour=TODAY)
        assert not inventaire.ajouter_au_catalogue(ARTICLE, "Tapes", jour=TODAY)
        assert len(inventaire.catalogue) == 1

    def test_un_type_sans_article_est_ignoré(self):
        inventaire = Inventaire()

        assert not inventaire.ajouter_au_catalogue(TYPE, "Brown", jour=TODAY)
        assert inventaire.catalogue == []

    def test_type_inconnu(self):
        with pytest.raises(NatureInconnue):
            Inventaire().ajouter_au_catalogue("colour", "Red")

    def test_le_retrait_ne_touche_pas_au_journal(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 50, ENTRÉE, jour=TODAY)
        inventaire.enregistrer("Boxes", "Small", 50, SORTIE, jour=TODAY)
        journal = list(inventaire.journal)

        inventaire.retirer_du_catalogue(ARTICLE, "Boxes", jour=TODAY)

        assert "Boxes" not in inventaire.articles_sélectionnables()
        assert inventaire.journal == journal
        assert len(inventaire.journal) == 2

    def test_l_exclusion_l_emporte_sur_la_déclaration_et_le_journal(self):
        inventaire = Inventaire()
        inventaire.ajouter_au_catalogue(FOURNISSEUR, "Warehouse", jour=TODAY)
        inventaire.enregistrer("Boxes", "Small", 5, ENTRÉE, fournisseur="Warehouse", jour=TODAY)

        inventaire.retirer_du_catalogue(FOURNISSEUR, "Warehouse", jour=TODAY)

        assert inventaire.fournisseurs_sélectionnables() == []

    def test_un_nouvel_ajout_lève_l_exclusion(self):
        inventaire = Inventaire()
        inventaire.ajouter_au_catalogue(ARTICLE, "Tapes", jour=TODAY)
        inventaire.retirer_du_catalogue(ARTICLE, "Tapes", jour=TODAY)

        inventaire.ajouter_au_catalogue(ARTICLE, "Tapes", jour=TODAY)

        assert inventaire.articles_sélectionnables() == ["Tapes"]

    def test_les_types_sont_rattachés_à_leur_article(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 5, ENTRÉE, jour=TODAY)
        inventaire.enregistrer("Tapes", "Small", 5, ENTRÉE, jour=TODAY)

        inventaire.retirer_du_catalogue(TYPE, "Small", "Boxes", jour=TODAY)

        assert inventaire.types_sélectionnables("Boxes") == []
        assert inventaire.types_sélectionnables("Tapes") == ["Small"]

    def test_un_article_exclu_masque_ses_types(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 5, ENTRÉE, jour=TODAY)

        inventaire.retirer_du_catalogue(ARTICLE, "Boxes", jour=TODAY)

        assert inventaire.types_sélectionnables("Boxes") == []
        assert list(inventaire.couples_suivis()) == []

    def test_un_fournisseur_utilisé_est_ajouté_au_catalogue(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 5, ENTRÉE, fournisseur="Acme", jour=TODAY)
        inventaire.enregistrer("Boxes", "Small", 5, ENTRÉE, fournisseur="Acme", jour=TODAY)

        fournisseurs = [c for c in inventaire.catalogue if c.nature == FOURNISSEUR]
        assert len(fournisseurs) == 1
        assert fournisseurs[0].déclarée

    def test_le_catalogue_ne_change_pas_la_taille_du_journal(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 5, ENTRÉE, jour=TODAY)

        inventaire.ajouter_au_catalogue(ARTICLE, "Tapes", jour=TODAY)
        inventaire.retirer_du_catalogue(ARTICLE, "Boxes", jour=TODAY)
        inventaire.ajouter_au_catalogue(TYPE, "Large", "Boxes", jour=TODAY)

        assert len(inventaire.journal) == 1

    def test_émet_catalog_changed(self):
        inventaire = Inventaire(réf="shop")
        inventaire.retirer_du_catalogue(TYPE, "Small", "Boxes", jour=TODAY)

        assert events.CatalogChanged(
            ref="shop", kind=TYPE, name="Small", parent="Boxes", action="removed"
        ) in inventaire.événements


# --- Messages de rupture ---


class TestMessagesDeRupture:
    def test_un_seul_message_par_couple(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 5, ENTRÉE, jour=TODAY)
        inventaire.enregistrer("Boxes", "Small", 5, SORTIE, jour=TODAY)
        inventaire.enregistrer("Boxes", "Small", 3, SORTIE, jour=TODAY)
        inventaire.réconcilier(jour=TODAY)

        assert [m.couple for m in inventaire.alertes] == [("Boxes", "Small")]
        assert inventaire.alertes[0].texte == "Out of stock: Boxes • Small"

    def test_le_message_disparaît_au_réapprovisionnement(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 5, SORTIE, jour=TODAY)
        assert ("Boxes", "Small") in paires_en_rupture(inventaire)

        inventaire.enregistrer("Boxes", "Small", 10, ENTRÉE, jour=TODAY)

        assert ("Boxes", "Small") not in paires_en_rupture(inventaire)

    def test_l_acquittement_retire_le_message_immédiatement(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 5, SORTIE, jour=TODAY)

        inventaire.acquitter("Boxes", "Small", jour=TODAY)

        assert inventaire.alertes == []
        assert inventaire.niveau_actuel("Boxes", "Small") == 0

    def test_l_acquittement_tient_tant_que_le_niveau_reste_à_zéro(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 5, SORTIE, jour=TODAY)
        inventaire.acquitter("Boxes", "Small", jour=TODAY)

        inventaire.enregistrer("Boxes", "Small", 1, SORTIE, jour=TODAY)
        inventaire.réconcilier(jour=TODAY)

        assert inventaire.alertes == []

    def test_l_acquittement_ne_survit_pas_à_un_passage_au_dessus_de_zéro(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 5, ENTRÉE, jour=TODAY)
        inventaire.enregistrer("Boxes", "Small", 5, SORTIE, jour=TODAY)
        inventaire.acquitter("Boxes", "Small", jour=TODAY)
        assert inventaire.alertes == []

        inventaire.enregistrer("Boxes", "Small", 4, ENTRÉE, jour=TODAY)
        inventaire.enregistrer("Boxes", "Small", 4, SORTIE, jour=TODAY)

        assert ("Boxes", "Small") in paires_en_rupture(inventaire)

    def test_le_changement_de_jour_réinstaure_le_message(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 5, SORTIE, jour=TODAY)
        inventaire.acquitter("Boxes", "Small", jour=TODAY)

        inventaire.changer_de_jour(jour=TOMORROW)

        assert ("Boxes", "Small") in paires_en_rupture(inventaire)
        assert inventaire.acquittements == []

    def test_un_acquittement_d_hier_est_ignoré_même_sans_changement_de_jour(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 5, SORTIE, jour=TODAY)
        inventaire.acquitter("Boxes", "Small", jour=TODAY)

        inventaire.réconcilier(jour=TOMORROW)

        assert ("Boxes", "Small") in paires_en_rupture(inventaire)

    def test_émet_out_of_stock_une_seule_fois(self):
        inventaire = Inventaire(réf="shop")
        inventaire.enregistrer("Boxes", "Small", 5, SORTIE, jour=TODAY)
        inventaire.enregistrer("Boxes", "Small", 5, SORTIE, jour=TODAY)

        ruptures = [e for e in inventaire.événements if isinstance(e, events.OutOfStock)]
        assert ruptures == [events.OutOfStock(ref="shop", item="Boxes", type="Small")]

    def test_un_type_déclaré_sans_stock_est_en_rupture(self):
        inventaire = Inventaire()
        inventaire.ajouter_au_catalogue(TYPE, "Brown", "Tapes", jour=TODAY)

        assert paires_en_rupture(inventaire) == {("Tapes", "Brown")}

    def test_un_couple_retiré_n_a_plus_de_message(self):
        inventaire = Inventaire()
        inventaire.enregistrer("Boxes", "Small", 5, SORTIE, jour=TODAY)

        inventaire.retirer_du_catalogue(TYPE, "Small", "Boxes", jour=TODAY)

        assert inventaire.alertes == []

    def test_invariant_après_chaque_mutation(self):
        """Un message existe ssi le niveau est nul et le couple non acquitté aujourd'hui."""
        inventaire = Inventaire()
        mutations = [
            lambda: inventaire.enregistrer("Boxes", "Small", 5, ENTRÉE, jour=TODAY),
            lambda: inventaire.enregistrer("Boxes", "Small", 5, SORTIE, jour=TODAY),
            lambda: inventaire.acquitter("Boxes", "Small", jour=TODAY),
            lambda: inventaire.ajouter_au_catalogue(TYPE, "Large", "Boxes", jour=TODAY),
            lambda: inventaire.enregistrer("Boxes", "Large", 2, ENTRÉE, jour=TODAY),
            lambda: inventaire.enregistrer("Boxes", "Small", 1, ENTRÉE, jour=TODAY),
            lambda: inventaire.enregistrer("Boxes", "Small", 1, SORTIE, jour=TODAY),
            lambda: inventaire.retirer_du_catalogue(TYPE, "Large", "Boxes", jour=TODAY),
            lambda: inventaire.changer_de_jour(jour=TODAY),
        ]
        for mutate in mutations:
            mutate()
            acquittés = {a.couple for a in inventaire.acquittements if a.jour == TODAY}
            attendu = {
                couple for couple in inventaire.couples_suivis()
                if inventaire.niveau_actuel(*couple) == 0 and couple not in acquittés
            }
            assert paires_en_rupture(inventaire) == attendu


# --- Instantanés distants ---


class TestRemplacementDuJournal:
    def test_l_instantané_remplace_le_journal(self):
        local = Inventaire()
        local.enregistrer("Boxes", "Small", 5, ENTRÉE, jour=TODAY)
        distant = Inventaire()
        distant.enregistrer("Tapes", "Clear", 8, ENTRÉE, jour=TODAY)

        local.remplacer_journal(distant.journal, jour=TODAY)

        assert [m.id for m in local.journal] == [m.id for m in distant.journal]
        assert local.niveau_actuel("Boxes", "Small") == 0
        assert local.niveau_actuel("Tapes", "Clear") == 8

    def test_les_mouvements_connus_sont_réutilisés(self):
        inventaire = Inventaire()
        mouvement = inventaire.enregistrer("Boxes", "Small", 5, ENTRÉE, jour=TODAY)

        inventaire.remplacer_journal([mouvement], jour=TODAY)

        assert inventaire.journal[0] is mouvement

    def test_les_fournisseurs_déclarés_sont_remplacés(self):
        inventaire = Inventaire()
        inventaire.ajouter_au_catalogue(FOURNISSEUR, "Warehouse", jour=TODAY)

        inventaire.remplacer_journal([], fournisseurs=["Supplier"], jour=TODAY)

        assert inventaire.fournisseurs_sélectionnables() == ["Supplier"]
