"""
Mapping ORM avec SQLAlchemy (classical mapping).

On définit les tables séparément, puis on mappe les classes
du domaine sur ces tables. Le modèle de domaine reste ainsi
ignorant de la persistance (persistence ignorance).

Les niveaux de stock ne sont pas persistés : ils sont dérivés
du journal `stock_events` à chaque lecture.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    event,
)
from sqlalchemy.orm import registry, relationship

from stockboard.domain import model

metadata = MetaData()
mapper_registry = registry(metadata=metadata)

# --- Définition des tables ---

inventories = Table(
    "inventories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("ref", String(255), unique=True, nullable=False),
    Column("numero_version", Integer, nullable=False, server_default="0"),
)

stock_events = Table(
    "stock_events",
    metadata,
    Column("pk", Integer, primary_key=True, autoincrement=True),
    Column("inventory_id", Integer, ForeignKey("inventories.id")),
    Column("id", String(64), nullable=False),
    Column("article", String(255), nullable=False),
    Column("type", String(255), nullable=False),
    Column("quantite", Integer, nullable=False),
    Column("sens", String(8), nullable=False),
    Column("horodatage", BigInteger, nullable=False),
    Column("fournisseur", String(255), nullable=True),
    Column("prix", Float, nullable=True),
    Column("facture", String(255), nullable=True),
)

catalog_entries = Table(
    "catalog_entries",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("inventory_id", Integer, ForeignKey("inventories.id")),
    Column("nature", String(16), nullable=False),
    Column("nom", String(255), nullable=False),
    Column("parent", String(255), nullable=False, server_default=""),
    Column("declaree", Boolean, nullable=False, default=False),
    Column("exclue", Boolean, nullable=False, default=False),
)

notifications = Table(
    "notifications",
    metadata,
    Column("pk", Integer, primary_key=True, autoincrement=True),
    Column("inventory_id", Integer, ForeignKey("inventories.id")),
    Column("id", String(80), nullable=False),
    Column("texte", String(1024), nullable=False),
    Column("sens", String(8), nullable=False),
    Column("horodatage", BigInteger, nullable=False),
)

out_of_stock_messages = Table(
    "out_of_stock_messages",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("inventory_id", Integer, ForeignKey("inventories.id")),
    Column("article", String(255), nullable=False),
    Column("type", String(255), nullable=False),
    Column("texte", String(1024), nullable=False),
    Column("horodatage", BigInteger, nullable=False),
)

acknowledgements = Table(
    "acknowledgements",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("inventory_id", Integer, ForeignKey("inventories.id")),
    Column("article", String(255), nullable=False),
    Column("type", String(255), nullable=False),
    Column("jour", Date, nullable=False),
)

_started = False


def start_mappers() -> None:
    """
    Mappe l'agrégat Inventaire et ses enfants sur les tables ci-dessus.

    Les attributs accentués du domaine sont rattachés explicitement
    à leurs colonnes. Idempotent : le point d'entrée Flask et la
    configuration des tests peuvent l'appeler tous les deux.
    """
    global _started
    if _started:
        return

    mouvements_mapper = mapper_registry.map_imperatively(
        model.Mouvement,
        stock_events,
        properties={"quantité": stock_events.c.quantite},
    )
    catalogue_mapper = mapper_registry.map_imperatively(
        model.EntréeCatalogue,
        catalog_entries,
        properties={"déclarée": catalog_entries.c.declaree},
    )
    notifications_mapper = mapper_registry.map_imperatively(model.Notification, notifications)
    messages_mapper = mapper_registry.map_imperatively(
        model.MessageDeRupture, out_of_stock_messages
    )
    acquittements_mapper = mapper_registry.map_imperatively(
        model.Acquittement, acknowledgements
    )
    mapper_registry.map_imperatively(
        model.Inventaire,
        inventories,
        properties={
            "réf": inventories.c.ref,
            "numéro_version": inventories.c.numero_version,
            "journal": relationship(
                mouvements_mapper,
                order_by=stock_events.c.pk,
                cascade="all, delete-orphan",
            ),
            "catalogue": relationship(
                catalogue_mapper,
                order_by=catalog_entries.c.id,
                cascade="all, delete-orphan",
            ),
            # Les plus récentes d'abord, comme dans le panneau de notifications
            "notifications": relationship(
                notifications_mapper,
                order_by=notifications.c.pk.desc(),
                cascade="all, delete-orphan",
            ),
            "alertes": relationship(
                messages_mapper,
                order_by=out_of_stock_messages.c.id,
                cascade="all, delete-orphan",
            ),
            "acquittements": relationship(
                acquittements_mapper,
                order_by=acknowledgements.c.id,
                cascade="all, delete-orphan",
            ),
        },
    )
    _started = True


@event.listens_for(model.Inventaire, "load")
def receive_load(inventaire: model.Inventaire, _: object) -> None:
    """Initialise la liste d'événements quand un Inventaire est chargé depuis la BDD."""
    inventaire.événements = []
