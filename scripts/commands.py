# commands.py

import signal

import click
from flask import current_app
from flask.cli import with_appcontext

from services.listing_csv_import_service import TEMPLATE_FILENAME, generate_csv_template
from services.listing_import_types import CancellationToken


def _echo_progress(message, current, total):
    click.echo(f"[{current}/{total}] {message}")


def _echo_result(result):
    click.echo(
        f"Properties: {result.properties_created} created, {result.properties_updated} updated, "
        f"{result.properties_skipped} skipped"
    )
    click.echo(f"Floor plans: {result.floor_plans_created} created")
    click.echo(f"Units: {result.units_created} created, {result.units_skipped} skipped")
    click.echo(f"Geocoding: {result.geocoded} succeeded, {result.geocode_failed} failed")
    for error in result.errors:
        where = ', '.join(f"{k}={v}" for k, v in error.items() if k != 'error')
        click.echo(f"  ERROR {where}: {error['error']}" if where else f"  ERROR: {error['error']}", err=True)


def _cancel_on_interrupt(token):
    """First Ctrl-C stops the run after the current property"""
    def handler(signum, frame):
        click.echo('Cancelling after the current property...', err=True)
        token.cancel()
    signal.signal(signal.SIGINT, handler)


@click.command('sync-rentcast')
@click.option('--city', default=None, help='Market city (defaults to RENTCAST_DEFAULT_CITY)')
@click.option('--state', default=None, help='Market state (defaults to RENTCAST_DEFAULT_STATE)')
@click.option('--property-type', default=None, help='RentCast property type filter')
@with_appcontext
def sync_rentcast(city, state, property_type):
    """Replace all RentCast-sourced listings with a fresh pull"""
    token = CancellationToken()
    _cancel_on_interrupt(token)

    sync_service = current_app.services.get('rentcast_sync')
    result = sync_service.sync_market(
        city=city, state=state, property_type=property_type,
        progress_callback=_echo_progress, cancel_token=token
    )
    _echo_result(result)
    if not result.success:
        raise click.exceptions.Exit(1)


@click.command('import-listings-csv')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_listings_csv(path):
    """Import properties, floor plans and units from a CSV file"""
    with open(path, mode='r', encoding='utf-8-sig') as csvfile:
        content = csvfile.read()

    token = CancellationToken()
    _cancel_on_interrupt(token)

    csv_service = current_app.services.get('listing_csv_import')
    result = csv_service.import_csv(content, filename=path, progress_callback=_echo_progress,
                                    cancel_token=token)
    _echo_result(result)
    if not result.success:
        raise click.exceptions.Exit(1)


@click.command('listings-csv-template')
@click.argument('path', required=False, type=click.Path(dir_okay=False, writable=True))
def listings_csv_template(path):
    """Write the listings CSV template (stdout when no PATH)"""
    template = generate_csv_template()
    if not path:
        click.echo(template, nl=False)
        return
    with open(path, mode='w', encoding='utf-8', newline='') as f:
        f.write(template)
    click.echo(f'Template written to {path} (suggested name: {TEMPLATE_FILENAME})')


def init_app(app):
    """Register commands with the Flask app"""
    app.cli.add_command(sync_rentcast)
    app.cli.add_command(import_listings_csv)
    app.cli.add_command(listings_csv_template)
