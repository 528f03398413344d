"""
Tests de la persistance locale (fichier JSON sous une clé fixe).
"""

import json
from datetime import date

from stockboard.adapters import local_state
from stockboard.domain import model
from stockboard.service_layer import unit_of_work


class TestChargement:
    def test_fichier_absent_donne_le_jeu_par_défaut(self, tmp_path):
        uow = unit_of_work.JsonFileUnitOfWork(tmp_path / "absent.json")

        with uow:
            inventaire = uow.inventaires.get(model.RÉF_PAR_DÉFAUT)

        assert inventaire.articles_sélectionnables() == ["Boxes", "Gloves", "Tapes"]
        assert inventaire.fournisseurs_sélectionnables() == ["Supplier", "Warehouse"]
        assert inventaire.niveau_actuel("Boxes", "Small") == 10
        assert inventaire.événements == []

    def test_fichier_corrompu_donne_le_jeu_par_défaut(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{pas du json", encoding="utf-8")
        uow = unit_of_work.JsonFileUnitOfWork(path)

        with uow:
            inventaire = uow.inventaires.get(model.RÉF_PAR_DÉFAUT)

        assert len(inventaire.journal) == 4

    def test_inventaire_corrompu_donne_le_jeu_par_défaut(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(
            json.dumps({local_state.STORAGE_KEY: {"main": {"events": "???"}}}),
            encoding="utf-8",
        )
        uow = unit_of_work.JsonFileUnitOfWork(path)

        with uow:
            inventaire = uow.inventaires.get("main")

        assert len(inventaire.journal) == 4

    def test_clé_absente_donne_le_jeu_par_défaut(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"autre-clé": {}}), encoding="utf-8")

        assert local_state.read_state(path) is None


class TestSauvegarde:
    def test_aller_retour_complet(self, tmp_path):
        path = tmp_path / "state.json"
        inventaire = model.Inventaire(réf="main")
        inventaire.enregistrer(
            "Boxes", "Small", 5, model.ENTRÉE, fournisseur="Acme", prix=1.5, facture="F-9",
            jour=date(2026, 3, 14),
        )
        inventaire.enregistrer("Boxes", "Small", 5, model.SORTIE, jour=date(2026, 3, 14))
        inventaire.retirer_du_catalogue(model.FOURNISSEUR, "Acme", jour=date(2026, 3, 14))
        inventaire.acquitter("Boxes", "Small", jour=date(2026, 3, 14))
        local_state.write_state(path, {"main": local_state.dump_inventory(inventaire)})

        rechargé = local_state.load_inventory(local_state.read_state(path)["main"])

        assert rechargé.journal == inventaire.journal
        assert rechargé.fournisseurs_sélectionnables() == []
        assert rechargé.acquittements == inventaire.acquittements
        assert [n.texte for n in rechargé.notifications] == [
            n.texte for n in inventaire.notifications
        ]
        assert rechargé.numéro_version == inventaire.numéro_version

    def test_sans_commit_rien_n_est_écrit(self, tmp_path):
        path = tmp_path / "state.json"
        uow = unit_of_work.JsonFileUnitOfWork(path)

        with uow:
            uow.inventaires.add(model.Inventaire(réf="main"))

        assert not path.exists()

    def test_une_erreur_d_écriture_est_ignorée(self, tmp_path):
        # Un répertoire à la place du fichier : l'écriture échoue
        path = tmp_path / "state.json"
        path.mkdir()

        local_state.write_state(path, {})

        assert path.is_dir()
