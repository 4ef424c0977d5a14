#!/usr/bin/env python3
"""
TorBox Media Manager
Browse, group and manage a TorBox library from the terminal, with TMDB metadata.
"""

import click
import functools
import json
import logging
import os
from dataclasses import asdict
from dotenv import load_dotenv

from tbmm.utils import load_config, setup_logging, format_file_size
from tbmm.grouping import filter_items, get_group_key, group_items, quality_badge, sort_items, SORT_KEYS
from tbmm.models import DownloadKind, MediaType
from tbmm.release_parser import parse_release_name
from tbmm.resolver import MetadataResolver
from tbmm.storage import AuthStore, LocalStorage, SettingsStore
from tbmm.tmdb import TMDBAPIError
from tbmm.torbox import TorBoxAPIError, TorBoxClient

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

KIND_CHOICES = [kind.value for kind in DownloadKind]
TYPE_CHOICES = ['all'] + [media_type.value for media_type in MediaType]

class App:
    """Shared state for the commands of one invocation"""

    def __init__(self, config: dict, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        storage = LocalStorage.from_config(config)
        self.auth = AuthStore(storage)
        self.settings_store = SettingsStore(storage)

    def torbox(self) -> TorBoxClient:
        api_key = self.config['api'].get('torbox_api_key') or self.auth.api_key
        if not api_key:
            raise click.UsageError("Not logged in. Run 'login API_KEY' or set TORBOX_API_KEY.")
        return TorBoxClient(api_key, self.config)

    def resolver(self) -> MetadataResolver:
        return MetadataResolver(self.config, self.settings_store.settings)

def handle_api_errors(func):
    """Report API failures as a one-line error and exit status 1"""
    @functools.wraps(func)
    def wrapper(app: App, *args, **kwargs):
        try:
            return func(app, *args, **kwargs)
        except (TorBoxAPIError, TMDBAPIError) as e:
            logger.debug("API call failed", exc_info=True)
            click.echo(f"Error: {e}", err=True)
            if app.verbose:
                import traceback
                traceback.print_exc()
            raise click.exceptions.Exit(1)
    return wrapper

def _item_line(item, show_badges: bool) -> str:
    parts = []
    if item.debrid:
        parts.append(f"[{item.debrid.kind.value} {item.debrid.id}]")
    parts.append(item.display_name)
    if item.debrid:
        parts.append(format_file_size(item.debrid.size))
    if show_badges:
        badge = quality_badge(parse_release_name(item.display_name))
        if badge:
            parts.append(badge)
    return "  ".join(parts)

def _group_heading(group) -> str:
    heading = group.title or group.key
    if group.year:
        heading += f" ({group.year})"
    if group.season is not None:
        heading += f" S{group.season:02d}"
    count = len(group.items)
    return f"{heading} - {count} release{'s' if count != 1 else ''}"

@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', default='config/settings.yaml', show_default=True,
              help='Path to the YAML settings file')
@click.version_option(version='1.0.0')
@click.pass_context
def cli(ctx, verbose, config_path):
    """Manage a TorBox media library"""
    config = load_config(config_path)
    setup_logging(verbose, config['logging']['dir'])
    ctx.obj = App(config, verbose)

@cli.command()
@click.argument('api_key')
@click.option('--verify', is_flag=True, help='Check the key against TorBox before saving it')
@click.pass_obj
@handle_api_errors
def login(app, api_key, verify):
    """Save a TorBox API key"""
    api_key = api_key.strip()
    if not api_key:
        raise click.BadParameter("API key must not be empty", param_hint='API_KEY')
    if verify:
        user = TorBoxClient(api_key, app.config).get_user()
        click.echo(f"Authenticated as {user.get('email', 'unknown')}")
    app.auth.login(api_key)
    click.echo("API key saved")

@cli.command()
@click.pass_obj
def logout(app):
    """Forget the saved TorBox API key"""
    app.auth.logout()
    click.echo("Logged out")

@cli.command()
@click.pass_obj
@handle_api_errors
def whoami(app):
    """Show the TorBox account and its usage"""
    client = app.torbox()
    user = client.get_user()
    stats = client.get_account_stats()
    click.echo(f"Email: {user.get('email', '')}")
    click.echo(f"Plan: {user.get('plan', '')}")
    click.echo(f"Torrents: {stats.get('total_torrents', 0)}  "
               f"Usenet: {stats.get('total_usenet', 0)}  "
               f"Web: {stats.get('total_webdownloads', 0)}")
    click.echo(f"Downloaded: {format_file_size(stats.get('total_downloaded', 0))}")

@cli.command()
@click.argument('names', nargs=-1, required=True)
@click.option('--json', 'as_json', is_flag=True, help='Print JSON instead of text')
def parse(names, as_json):
    """Parse release names and show their group keys"""
    for name in names:
        parsed = parse_release_name(name)
        key = get_group_key(parsed)
        if as_json:
            click.echo(json.dumps(dict(asdict(parsed), name=name, group_key=key), ensure_ascii=False))
            continue
        click.echo(name)
        for field_name, value in asdict(parsed).items():
            if value is not None:
                click.echo(f"  {field_name}: {value}")
        click.echo(f"  group_key: {key}")

@cli.command()
@click.option('--kind', type=click.Choice(['all'] + KIND_CHOICES), default='all', help='Download kind to list')
@click.option('--grouped/--flat', default=None, help='Group releases of the same title')
@click.option('--type', 'media_type', type=click.Choice(TYPE_CHOICES), default='all', help='Media type filter')
@click.option('--sort', 'sort_by', type=click.Choice(SORT_KEYS), default='added', help='Sort order for the flat view')
@click.option('--filter', 'query', default='', help='Only titles containing this text')
@click.option('--no-metadata', is_flag=True, help='Skip TMDB lookups')
@click.pass_obj
@handle_api_errors
def library(app, kind, grouped, media_type, sort_by, query, no_metadata):
    """List the library"""
    client = app.torbox()
    prefs = app.settings_store.settings
    if grouped is None:
        grouped = prefs.grouped_view

    if kind == 'all':
        downloads = client.get_all_downloads()
    else:
        downloads = client.get_downloads(DownloadKind(kind))

    items = app.resolver().build_library(downloads, enrich=not no_metadata)
    items = filter_items(items, media_type, query)

    if not items:
        click.echo("No media found")
        return

    if grouped:
        for group in group_items(items):
            click.echo(_group_heading(group))
            for item in group.items:
                click.echo(f"  {_item_line(item, prefs.show_badges)}")
    else:
        for item in sort_items(items, sort_by):
            click.echo(_item_line(item, prefs.show_badges))

@cli.command()
@click.argument('target')
@click.option('--kind', type=click.Choice(KIND_CHOICES), default='torrent', show_default=True)
@click.option('--file', 'is_file', is_flag=True, help='TARGET is a .torrent file to upload')
@click.pass_obj
@handle_api_errors
def add(app, target, kind, is_file):
    """Add a magnet, .torrent file, usenet link or web link"""
    client = app.torbox()
    kind = DownloadKind(kind)

    if is_file:
        if not os.path.isfile(target):
            raise click.BadParameter(f"No such file: {target}", param_hint='TARGET')
        response = client.add_torrent_file(target)
    elif kind is DownloadKind.TORRENT:
        response = client.add_magnet(target)
    elif kind is DownloadKind.USENET:
        response = client.create_usenet_download(target)
    else:
        response = client.create_web_download(target)

    data = response.get('data') or {}
    name = data.get('name') if isinstance(data, dict) else None
    click.echo(f"Added: {name}" if name else response.get('detail') or "Added")

def _control(app: App, kind: str, download_id: int, operation: str) -> None:
    response = app.torbox().control(DownloadKind(kind), download_id, operation)
    click.echo(response.get('detail') or f"{operation}: {kind} {download_id}")

@cli.command()
@click.argument('download_id', type=int)
@click.option('--kind', type=click.Choice(KIND_CHOICES), default='torrent', show_default=True)
@click.pass_obj
@handle_api_errors
def delete(app, download_id, kind):
    """Delete a download"""
    _control(app, kind, download_id, "Delete")

@cli.command()
@click.argument('download_id', type=int)
@click.option('--kind', type=click.Choice(KIND_CHOICES), default='torrent', show_default=True)
@click.pass_obj
@handle_api_errors
def pause(app, download_id, kind):
    """Pause a download"""
    _control(app, kind, download_id, "Pause")

@cli.command()
@click.argument('download_id', type=int)
@click.option('--kind', type=click.Choice(KIND_CHOICES), default='torrent', show_default=True)
@click.pass_obj
@handle_api_errors
def resume(app, download_id, kind):
    """Resume a paused download"""
    _control(app, kind, download_id, "Resume")

@cli.command()
@click.argument('download_id', type=int)
@click.option('--kind', type=click.Choice(KIND_CHOICES), default='torrent', show_default=True)
@click.option('--file-id', type=int, default=None, help='Single file inside the download')
@click.option('--zip', 'zip_link', is_flag=True, help='Link to a zip of the whole download')
@click.option('--stream', is_flag=True, help='Request a stream link instead')
@click.pass_obj
@handle_api_errors
def link(app, download_id, kind, file_id, zip_link, stream):
    """Request a download or stream link"""
    client = app.torbox()
    kind = DownloadKind(kind)
    if stream:
        url = client.request_stream_link(kind, download_id, file_id)
    else:
        url = client.request_download_link(kind, download_id, file_id, zip_link)
    click.echo(url)

@cli.command()
@click.argument('query')
@click.option('--type', 'media_type', type=click.Choice(['all', 'movie', 'show']), default='all')
@click.pass_obj
@handle_api_errors
def search(app, query, media_type):
    """Search TMDB for movies and shows"""
    resolver = app.resolver()
    if not resolver.tmdb:
        raise click.UsageError("TMDB search needs TMDB_API_KEY")

    results = resolver.search(query, None if media_type == 'all' else MediaType(media_type))
    if not results:
        click.echo("No results")
        return
    for item in results:
        year = f" ({item.year})" if item.year else ""
        click.echo(f"{item.title}{year}  [{item.type.value}]  tmdb:{item.external_ids.tmdb}")

@cli.command('torrent-search')
@click.argument('query')
@click.option('--limit', type=int, default=20, show_default=True)
@click.option('--category', default=None)
@click.pass_obj
@handle_api_errors
def torrent_search(app, query, limit, category):
    """Search torrents and show which are already cached"""
    client = app.torbox()
    results = client.search_torrents(query, category, limit)
    if not results:
        click.echo("No results")
        return

    hashes = [r['hash'] for r in results if r.get('hash')]
    cached = {entry.get('hash', '').lower() for entry in client.check_cached(hashes)} if hashes else set()
    for result in results:
        is_cached = (result.get('hash') or '').lower() in cached
        badge = quality_badge(parse_release_name(result.get('name', '')))
        click.echo(f"{'*' if is_cached else ' '} {result.get('name', '')}  "
                   f"{format_file_size(result.get('size') or 0)}  seeds:{result.get('seeds', 0)}  {badge}".rstrip())

@cli.command()
@click.option('--rpdb-key', default=None, help='RPDB API key for enhanced posters')
@click.option('--rpdb/--no-rpdb', 'rpdb_enabled', default=None, help='Use RPDB posters')
@click.option('--badges/--no-badges', 'show_badges', default=None, help='Show quality badges')
@click.option('--grouped/--flat', 'grouped_view', default=None, help='Default library view')
@click.pass_obj
def settings(app, rpdb_key, rpdb_enabled, show_badges, grouped_view):
    """Show or change settings"""
    changes = {
        'rpdb_api_key': rpdb_key,
        'rpdb_enabled': rpdb_enabled,
        'show_badges': show_badges,
        'grouped_view': grouped_view,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    current = app.settings_store.update(**changes) if changes else app.settings_store.settings
    for key, value in asdict(current).items():
        if key == 'rpdb_api_key' and value:
            value = value[:4] + '...'
        click.echo(f"{key}: {value}")

if __name__ == '__main__':
    cli()
