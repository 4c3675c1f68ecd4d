# transit_lines/cli.py
"""Maintenance commands, run as ``flask --app main routes ...``."""

import json
import logging

import click
from flask import current_app
from flask.cli import AppGroup
from google.api_core.exceptions import GoogleAPIError

logger = logging.getLogger(__name__)

routes_cli = AppGroup("routes", help="Maintenance commands for stored routes.")


def _repository():
    return current_app.extensions["transit_lines"]["repository"]


@routes_cli.command("make-public")
@click.option("--actor", required=True, help="Identity recorded as updatedBy.")
def make_public(actor):
    """Mark every stored route as public so guests can see it."""
    try:
        updated = _repository().make_all_public(actor)
    except GoogleAPIError as e:
        raise click.ClickException(f"Failed to update routes: {e}")
    click.echo(f"{updated} routes made public")


@routes_cli.command("export")
@click.argument("output", type=click.Path(dir_okay=False, writable=True))
def export(output):
    """Write every stored route document to OUTPUT as JSON."""
    try:
        documents = _repository().export_routes()
    except GoogleAPIError as e:
        raise click.ClickException(f"Export failed: {e}")

    with open(output, "w", encoding="utf-8") as fh:
        json.dump(documents, fh, indent=2, ensure_ascii=False, default=str)
    logger.info(f"Exported {len(documents)} routes to {output}")
    click.echo(f"Export complete: {output} ({len(documents)} routes)")
