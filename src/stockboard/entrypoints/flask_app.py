"""
Point d'entrée Flask.

L'API Flask est un thin adapter : elle se contente de
convertir les requêtes HTTP en commands, les envoie au
message bus, et convertit les résultats en réponses HTTP.

L'API ne contient aucune logique métier.
"""

from __future__ import annotations

import io
import logging
from datetime import date

from flask import Flask, jsonify, request, send_file

from stockboard import config
from stockboard.adapters import event_store, spreadsheet
from stockboard.domain import commands, model
from stockboard.entrypoints import ticker
from stockboard.service_layer import bootstrap, handlers, messagebus
from stockboard.views import views

logger = logging.getLogger(__name__)

settings = config.get_settings()
app = Flask(__name__)
bus: messagebus.MessageBus | None = None


def get_bus() -> messagebus.MessageBus:
    """Le bus est construit à la première requête, une fois par instance."""
    global bus
    if bus is None:
        store = None
        if settings.event_store_uri:
            store = event_store.SqlAlchemyEventStore(settings.event_store_uri)
        bus = bootstrap.bootstrap(event_store=store)
    return bus


def _réf() -> str:
    return request.args.get("ref", settings.inventory_ref)


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _entier(value, champ: str):
    """Accepte un entier ou sa forme texte ("5") ; sinon MouvementInvalide (400)."""
    if value is None or (isinstance(value, int) and not isinstance(value, bool)):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise handlers.MouvementInvalide(f"{champ} invalide : {value!r}")


def _optional_float(value) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise handlers.MouvementInvalide(f"Prix invalide : {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise handlers.MouvementInvalide(f"Prix invalide : {value!r}")


@app.errorhandler(handlers.MouvementInvalide)
@app.errorhandler(handlers.EntréeCatalogueInvalide)
@app.errorhandler(handlers.InventaireInconnu)
def bad_request(e: Exception):
    return jsonify({"message": str(e)}), 400


@app.route("/stock_in", methods=["POST"])
def stock_in_endpoint():
    """
    POST /stock_in
    Body JSON : { item, type, qty, source?, price?, invoice?, at? }
    """
    data = request.json
    cmd = commands.RecordStockIn(
        item=data.get("item", ""),
        type=data.get("type", ""),
        qty=_entier(data.get("qty", 0), "Quantité"),
        source=data.get("source") or None,
        price=_optional_float(data.get("price")),
        invoice=data.get("invoice") or None,
        at=_entier(data.get("at"), "Horodatage"),
        ref=_réf(),
    )
    event_id = get_bus().handle(cmd).pop(0)
    return jsonify({"id": event_id}), 201


@app.route("/stock_out", methods=["POST"])
def stock_out_endpoint():
    """
    POST /stock_out
    Body JSON : { item, type, qty, at? }
    """
    data = request.json
    cmd = commands.RecordStockOut(
        item=data.get("item", ""),
        type=data.get("type", ""),
        qty=_entier(data.get("qty", 0), "Quantité"),
        at=_entier(data.get("at"), "Horodatage"),
        ref=_réf(),
    )
    event_id = get_bus().handle(cmd).pop(0)
    return jsonify({"id": event_id}), 201


@app.route("/catalog", methods=["POST", "DELETE"])
def catalog_endpoint():
    """
    POST|DELETE /catalog
    Body JSON : { kind, name, parent? }
    """
    data = request.json
    command_class = (
        commands.AddCatalogEntry if request.method == "POST" else commands.RemoveCatalogEntry
    )
    cmd = command_class(
        kind=data.get("kind", ""),
        name=data.get("name", ""),
        parent=data.get("parent", ""),
        ref=_réf(),
    )
    changed = get_bus().handle(cmd).pop(0)
    return jsonify({"changed": changed}), 200


@app.route("/messages/acknowledge", methods=["POST"])
def acknowledge_endpoint():
    data = request.json
    get_bus().handle(
        commands.AcknowledgeOutOfStock(item=data["item"], type=data["type"], ref=_réf())
    )
    return "OK", 200


@app.route("/notifications", methods=["GET", "DELETE"])
def notifications_endpoint():
    if request.method == "DELETE":
        get_bus().handle(commands.ClearNotifications(ref=_réf()))
        return "OK", 200
    return jsonify(get_bus().query(views.notifications, réf=_réf())), 200


@app.route("/messages", methods=["GET"])
def messages_endpoint():
    return jsonify(get_bus().query(views.messages, réf=_réf())), 200


@app.route("/stock", methods=["GET"])
def stock_endpoint():
    lignes = get_bus().query(
        views.niveaux_de_stock, réf=_réf(), recherche=request.args.get("search")
    )
    return jsonify(lignes), 200


@app.route("/history/<direction>", methods=["GET"])
def history_endpoint(direction: str):
    if direction not in model.SENS:
        return "not found", 404
    lignes = get_bus().query(
        views.historique, direction, réf=_réf(), recherche=request.args.get("search")
    )
    return jsonify(lignes), 200


@app.route("/kpis", methods=["GET"])
def kpis_endpoint():
    return jsonify(get_bus().query(views.indicateurs, réf=_réf())), 200


@app.route("/selectable", methods=["GET"])
def selectable_endpoint():
    return jsonify(get_bus().query(views.sélection, réf=_réf())), 200


def _report_rows() -> list[dict]:
    direction = request.args.get("direction")
    return get_bus().query(
        views.rapport,
        réf=_réf(),
        du=_parse_date(request.args.get("from")),
        au=_parse_date(request.args.get("to")),
        fournisseur=request.args.get("source") or None,
        sens=direction if direction in model.SENS else None,
    )


@app.route("/report", methods=["GET"])
def report_endpoint():
    """
    GET /report?from=YYYY-MM-DD&to=YYYY-MM-DD&source=...&direction=in|out
    """
    return jsonify(_report_rows()), 200


@app.route("/report.xlsx", methods=["GET"])
def report_xlsx_endpoint():
    title = "Supplier Report" if request.args.get("direction") == model.ENTRÉE else "Stock Report"
    buffer = io.BytesIO()
    spreadsheet.export_report(_report_rows(), buffer, title=title)
    buffer.seek(0)
    return send_file(
        buffer,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        as_attachment=True,
        download_name="supplier_report.xlsx" if title == "Supplier Report" else "stock_report.xlsx",
    )


def main() -> None:
    logging.basicConfig(level=settings.log_level)
    current_bus = get_bus()
    store = current_bus.dependencies.get("event_store")
    background = ticker.Ticker(
        current_bus,
        interval=settings.tick_seconds,
        event_store=store,
        ref=settings.inventory_ref,
    )
    background.start()
    try:
        app.run()
    finally:
        background.stop()


if __name__ == "__main__":
    main()
