"""Provision a shop user.

Usage::

    tally-seed-user +919999999999 1234
"""

import logging
from datetime import date

import typer

from catalog import get_catalog
from database import db
from errors import StorageError
from reconciler import fresh_tally
from security import hash_pin
from store import TallyStore

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, help=__doc__)


@app.command()
def seed(
    phone: str = typer.Argument(..., help="Phone number the user logs in with"),
    pin: str = typer.Argument(..., help="Numeric PIN"),
) -> None:
    try:
        store = TallyStore(db)
        store.ensure_indexes()
        if store.find_user_by_phone(phone):
            typer.echo(f"User already exists: {phone}")
            raise typer.Exit(code=0)

        pin_hash, salt = hash_pin(pin)
        today = fresh_tally(get_catalog(), date.today().isoformat())
        user_id = store.create_user(phone, pin_hash, salt, today)
    except StorageError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    logger.info("created user %s (%s)", phone, user_id)
    typer.echo(f"Created user: {phone}")


if __name__ == "__main__":
    app()
