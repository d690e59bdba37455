"""CLI interface for mirror-gallery.

Commands:
    creators      - List creators (favorites marked with *)
    search        - Search creators by id or name
    posts         - List a creator's posts
    post          - Show a single post
    search-posts  - Full-text post search
    comments      - Show a post's comments
    download      - Download a post's files
    downloads     - Manage the downloads ledger
    favorites     - Manage favorite creators
    saved         - Manage saved posts
    folders       - Manage folders of saved posts
    settings      - Show or change app settings
    discord       - Browse the Discord archive
    index         - Download and search the offline creator index
    export        - Export saved posts or favorites as CSV
    status        - Show configuration and local state
"""

import functools
import sys
from pathlib import Path

import click

from .config import CONFIG_FILE, config_exists, load_config
from .logging_config import setup_logging
from .models import ApiSource, format_size

SOURCE_CHOICE = click.Choice([s.value for s in ApiSource], case_sensitive=False)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", type=click.Path(), default=None, help="Config file path")
@click.option("--source", type=SOURCE_CHOICE, default=None, help="Mirror to query")
@click.pass_context
def main(ctx, verbose, config, source):
    """Mirror Gallery — browse Kemono/Coomer creators and posts."""
    setup_logging(debug=verbose)
    ctx.ensure_object(dict)
    config_path = Path(config) if config else CONFIG_FILE
    try:
        app_config = load_config(config_path)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    ctx.obj["config_path"] = config_path
    ctx.obj["config"] = app_config
    ctx.obj["source"] = ApiSource.parse(source) if source else app_config.default_source
    ctx.call_on_close(lambda: _close(ctx.obj))


def _close(obj: dict) -> None:
    repo = obj.pop("repository", None)
    if repo is not None:
        repo.client.close()
        if repo.search is not None:
            repo.search.close()


def _local(ctx):
    from .state import JsonStore, LocalStore

    return LocalStore(JsonStore(ctx.obj["config"].state_dir))


def _repository(ctx):
    """Build the repository lazily so --help stays fast."""
    if "repository" not in ctx.obj:
        from .client import MirrorClient
        from .repository import Repository
        from .search import SearchClient

        config = ctx.obj["config"]
        client = MirrorClient(config.domains.registry(), timeout=config.timeout)
        ctx.obj["repository"] = Repository(
            client, _local(ctx), search=SearchClient(config.search_base_url)
        )
    return ctx.obj["repository"]


def _fail(e: Exception) -> None:
    click.echo(f"Error: {e}", err=True)
    sys.exit(1)


def _guard(func):
    """Turn client errors into a message and exit status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from .client import MirrorError
        from .discord import DiscordUnavailableError
        from .search import SearchError

        try:
            return func(*args, **kwargs)
        except DiscordUnavailableError:
            click.echo(
                "Error: Discord archive is temporarily unavailable. Please try again later.",
                err=True,
            )
            sys.exit(1)
        except (MirrorError, SearchError) as e:
            _fail(e)

    return wrapper


def _echo_creator(creator) -> None:
    star = "*" if creator.favorited else " "
    click.echo(f"{star} {creator.service:<10} {creator.id:<24} {creator.name}")


def _echo_post(post) -> None:
    mark = "S" if post.saved else " "
    date = post.published.strftime("%Y-%m-%d")
    click.echo(
        f"{mark} {post.id:<12} {date}  {post.title}  [{post.media_count} files]"
    )


# ── Remote browsing ────────────────────────────────────────────────────


@main.command()
@click.option("--service", default=None, help="Only this service (e.g. patreon)")
@click.option("--limit", type=int, default=50, help="Maximum creators to show")
@click.pass_context
@_guard
def creators(ctx, service, limit):
    """List creators (favorites marked with *)."""
    repo = _repository(ctx)
    results = repo.list_creators(service, ctx.obj["source"])
    for creator in results[:limit]:
        _echo_creator(creator)
    click.echo(f"{len(results)} creators.")


@main.command()
@click.argument("query")
@click.option("--service", default=None, help="Restrict to one service")
@click.option("--by-name", is_flag=True, help="Use the external name-search API")
@click.pass_context
@_guard
def search(ctx, query, service, by_name):
    """Search creators by id or name."""
    repo = _repository(ctx)
    if by_name:
        results = repo.search_creators_by_name(query, ctx.obj["source"])
    else:
        results = repo.search_creators(query, ctx.obj["source"], service)
    if not results:
        click.echo("No creators found.")
        return
    for creator in results:
        _echo_creator(creator)


@main.command()
@click.argument("service")
@click.argument("creator_id")
@click.option("--offset", type=int, default=0, help="Pagination offset (multiple of 50)")
@click.pass_context
@_guard
def posts(ctx, service, creator_id, offset):
    """List a creator's posts."""
    repo = _repository(ctx)
    results = repo.list_creator_posts(service, creator_id, offset, ctx.obj["source"])
    for post in results:
        _echo_post(post)
    click.echo(f"{len(results)} posts.")


@main.command()
@click.argument("service")
@click.argument("creator_id")
@click.argument("post_id")
@click.pass_context
@_guard
def post(ctx, service, creator_id, post_id):
    """Show a single post and its media URLs."""
    repo = _repository(ctx)
    source = ctx.obj["source"]
    result = repo.get_post(service, creator_id, post_id, source)
    click.echo(result.title)
    click.echo("=" * 40)
    click.echo(f"Published: {result.published.isoformat()}")
    click.echo(f"Saved: {'yes' if result.saved else 'no'}")
    if result.tags:
        click.echo(f"Tags: {', '.join(result.tags)}")
    if result.content:
        click.echo()
        click.echo(result.content)
    registry = repo.client.registry
    for url in result.media_urls(source, registry):
        click.echo(url)


@main.command()
@click.argument("service")
@click.argument("creator_id")
@click.argument("post_id")
@click.option("--dest", "-d", type=click.Path(), default=None, help="Download directory")
@click.pass_context
@_guard
def download(ctx, service, creator_id, post_id, dest):
    """Download a post's files, skipping ones already downloaded."""
    from dataclasses import replace

    from .downloads import MediaDownloader

    repo = _repository(ctx)
    source = ctx.obj["source"]
    result = repo.get_post(service, creator_id, post_id, source)
    result = replace(
        result,
        id=result.id or post_id,
        user=result.user or creator_id,
        service=result.service or service,
    )
    dest_dir = Path(dest) if dest else ctx.obj["config"].state_dir / "downloads"

    local = repo.local
    with MediaDownloader(repo.client.registry) as downloader:
        downloaded = downloader.download_post(
            result, dest_dir, source, skip=local.downloaded_ids()
        )
    for item in downloaded:
        local.add_download(item)
        click.echo(f"{item.file_path}  ({format_size(item.file_size)})")
    click.echo(f"Downloaded {len(downloaded)} files.")


@main.group()
def downloads():
    """Manage the downloads ledger."""


@downloads.command("list")
@click.pass_context
def downloads_list(ctx):
    local = _local(ctx)
    items = local.list_downloads()
    if not items:
        click.echo("No downloads.")
        return
    for item in items:
        click.echo(f"{item.id}  {item.name}  {format_size(item.file_size)}  {item.file_path}")
    click.echo(f"{len(items)} files, {format_size(local.total_download_size())} total.")


@downloads.command("remove")
@click.argument("file_id")
@click.option("--delete-file", is_flag=True, help="Also delete the file on disk")
@click.pass_context
def downloads_remove(ctx, file_id, delete_file):
    local = _local(ctx)
    item = local.get_download(file_id)
    if item is None or not local.remove_download(file_id):
        click.echo(f"Not in downloads: {file_id}", err=True)
        sys.exit(1)
    if delete_file:
        Path(item.file_path).unlink(missing_ok=True)
    click.echo(f"Removed {item.name}")


@downloads.command("clear")
@click.pass_context
def downloads_clear(ctx):
    _local(ctx).clear_downloads()
    click.echo("Downloads ledger cleared.")


@main.command("search-posts")
@click.argument("query")
@click.option("--offset", type=int, default=0)
@click.option("--limit", type=int, default=50)
@click.pass_context
@_guard
def search_posts(ctx, query, offset, limit):
    """Full-text post search."""
    repo = _repository(ctx)
    for result in repo.search_posts(query, offset, limit, ctx.obj["source"]):
        _echo_post(result)


@main.command()
@click.argument("service")
@click.argument("creator_id")
@click.argument("post_id")
@click.pass_context
def comments(ctx, service, creator_id, post_id):
    """Show a post's comments (empty when unavailable)."""
    repo = _repository(ctx)
    results = repo.get_comments(post_id, service, creator_id, ctx.obj["source"])
    if not results:
        click.echo("No comments.")
        return
    for comment in results:
        click.echo(f"{comment.username} ({comment.timestamp:%Y-%m-%d}): {comment.content}")


# ── Favorites ──────────────────────────────────────────────────────────


@main.group()
def favorites():
    """Manage favorite creators."""


@favorites.command("list")
@click.pass_context
def favorites_list(ctx):
    local = _local(ctx)
    results = local.list_favorite_creators()
    if not results:
        click.echo("No favorite creators.")
        return
    for creator in results:
        _echo_creator(creator)


@favorites.command("add")
@click.argument("service")
@click.argument("creator_id")
@click.pass_context
@_guard
def favorites_add(ctx, service, creator_id):
    repo = _repository(ctx)
    creator = repo.get_creator(service, creator_id, ctx.obj["source"])
    repo.save_favorite_creator(creator)
    click.echo(f"Added {creator.name} ({service}/{creator_id}) to favorites.")


@favorites.command("remove")
@click.argument("creator_id")
@click.option("--service", default=None, help="Only remove the entry for this service")
@click.pass_context
def favorites_remove(ctx, creator_id, service):
    if _local(ctx).remove_favorite_creator(creator_id, service):
        click.echo(f"Removed {creator_id} from favorites.")
    else:
        click.echo(f"{creator_id} is not a favorite.")


# ── Saved posts ────────────────────────────────────────────────────────


@main.group()
def saved():
    """Manage saved posts."""


@saved.command("list")
@click.option("--offset", type=int, default=0)
@click.option("--limit", type=int, default=50)
@click.pass_context
def saved_list(ctx, offset, limit):
    results = _local(ctx).list_saved_posts(offset, limit)
    if not results:
        click.echo("No saved posts.")
        return
    for result in results:
        _echo_post(result.with_saved(True))


@saved.command("add")
@click.argument("service")
@click.argument("creator_id")
@click.argument("post_id")
@click.pass_context
@_guard
def saved_add(ctx, service, creator_id, post_id):
    repo = _repository(ctx)
    result = repo.get_post(service, creator_id, post_id, ctx.obj["source"])
    repo.save_post(result)
    click.echo(f"Saved post {result.id}: {result.title}")


@saved.command("remove")
@click.argument("post_id")
@click.pass_context
def saved_remove(ctx, post_id):
    _local(ctx).remove_saved_post(post_id)
    click.echo(f"Removed post {post_id}.")


# ── Folders ────────────────────────────────────────────────────────────


@main.group()
def folders():
    """Manage folders of saved posts."""


@folders.command("list")
@click.pass_context
def folders_list(ctx):
    results = _local(ctx).list_folders()
    if not results:
        click.echo("No folders.")
        return
    for folder in results:
        click.echo(f"{folder.id}  {folder.name}  ({folder.post_count} posts)")


@folders.command("create")
@click.argument("name")
@click.pass_context
def folders_create(ctx, name):
    folder = _local(ctx).create_folder(name)
    click.echo(f"Created folder {folder.name} ({folder.id}).")


@folders.command("delete")
@click.argument("folder_id")
@click.pass_context
def folders_delete(ctx, folder_id):
    _local(ctx).remove_folder(folder_id)
    click.echo(f"Deleted folder {folder_id}.")


@folders.command("add")
@click.argument("folder_id")
@click.argument("post_id")
@click.pass_context
def folders_add(ctx, folder_id, post_id):
    _local(ctx).add_post_to_folder(folder_id, post_id)
    click.echo(f"Added {post_id} to folder {folder_id}.")


@folders.command("remove")
@click.argument("folder_id")
@click.argument("post_id")
@click.pass_context
def folders_remove(ctx, folder_id, post_id):
    _local(ctx).remove_post_from_folder(folder_id, post_id)
    click.echo(f"Removed {post_id} from folder {folder_id}.")


# ── Settings ───────────────────────────────────────────────────────────


@main.group()
def settings():
    """Show or change app settings."""


@settings.command("show")
@click.pass_context
def settings_show(ctx):
    for key, value in sorted(_local(ctx).get_settings().items()):
        click.echo(f"{key} = {value}")


def _coerce_setting(value: str):
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if value.isdigit():
        return int(value)
    return value


@settings.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def settings_set(ctx, key, value):
    local = _local(ctx)
    current = local.get_settings()
    current[key] = _coerce_setting(value)
    local.save_settings(current)
    click.echo(f"{key} = {current[key]}")


# ── Discord ────────────────────────────────────────────────────────────


@main.group()
def discord():
    """Browse the Discord archive."""


@discord.command("servers")
@click.pass_context
@_guard
def discord_servers(ctx):
    for server in _repository(ctx).list_discord_servers(ctx.obj["source"]):
        click.echo(f"{server.id:<22} {server.name}")


@discord.command("channels")
@click.argument("server_id")
@click.option("--all", "show_all", is_flag=True, help="Include categories")
@click.pass_context
@_guard
def discord_channels(ctx, server_id, show_all):
    channels = _repository(ctx).lookup_discord_channels(server_id, ctx.obj["source"])
    for channel in channels:
        if not show_all and not channel.is_post_channel:
            continue
        click.echo(
            f"{channel.display_emoji} {channel.id:<22} {channel.name} ({channel.post_count})"
        )


@discord.command("posts")
@click.argument("channel_id")
@click.option("--offset", type=int, default=0)
@click.pass_context
@_guard
def discord_posts(ctx, channel_id, offset):
    results = _repository(ctx).list_discord_channel_posts(
        channel_id, offset, ctx.obj["source"]
    )
    for result in results:
        _echo_post(result)


@discord.command("search")
@click.argument("query", required=False)
@click.pass_context
@_guard
def discord_search(ctx, query):
    """Find Discord servers by name (popular servers without QUERY)."""
    repo = _repository(ctx)
    for server in repo.search.search_discord_servers(query):
        click.echo(f"{server.id:<22} {server.name}")


# ── Creator index ──────────────────────────────────────────────────────


@main.group()
def index():
    """Download and search the offline creator index."""


def _index_cache(ctx):
    from .index import CreatorIndexCache

    return CreatorIndexCache(ctx.obj["config"].state_dir / "index" / ctx.obj["source"].value)


@index.command("refresh")
@click.pass_context
@_guard
def index_refresh(ctx):
    config = ctx.obj["config"]
    site = config.domains.registry().site_base(ctx.obj["source"])
    loaded = _index_cache(ctx).load(site, force=True)
    click.echo(f"Indexed {len(loaded)} creators.")


@index.command("search")
@click.argument("query")
@click.pass_context
@_guard
def index_search(ctx, query):
    config = ctx.obj["config"]
    site = config.domains.registry().site_base(ctx.obj["source"])
    for item in _index_cache(ctx).load(site).search(query):
        click.echo(f"{item.service:<10} {item.user_id:<24} {item.name}")


# ── Export ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("what", type=click.Choice(["saved", "favorites"]))
@click.option("-o", "--output", type=click.Path(), default=None, help="Output CSV file path")
@click.pass_context
def export(ctx, what, output):
    """Export saved posts or favorite creators as CSV.

    If -o is not specified, CSV is written to stdout.
    """
    from .converter import creators_to_csv, saved_posts_to_csv

    local = _local(ctx)
    if what == "saved":
        items = local.list_saved_posts()

        def render(f=None):
            return saved_posts_to_csv(items, f, ctx.obj["source"])
    else:
        items = local.list_favorite_creators()

        def render(f=None):
            return creators_to_csv(items, f)

    if not items:
        click.echo(f"Error: No {what} to export.", err=True)
        sys.exit(1)

    if output:
        with open(output, "w", encoding="utf-8", newline="") as f:
            render(f)
        click.echo(f"CSV written to {output}", err=True)
    else:
        click.echo(render(), nl=False)


@main.command()
@click.pass_context
def status(ctx):
    """Show configuration and local state."""
    config_path = ctx.obj["config_path"]
    config = ctx.obj["config"]
    source = ctx.obj["source"]

    click.echo("Mirror Gallery — Status")
    click.echo("=" * 40)
    click.echo(
        f"Config: {'Found' if config_exists(config_path) else 'Defaults'} ({config_path})"
    )
    click.echo(f"Source: {source.value}")
    for base in config.domains.registry().candidate_domains(source):
        click.echo(f"  API: {base}")
    click.echo(f"State dir: {config.state_dir}")

    local = _local(ctx)
    click.echo(f"Favorite creators: {len(local.list_favorite_creators())}")
    click.echo(f"Saved posts: {len(local.list_saved_posts())}")
    click.echo(f"Folders: {len(local.list_folders())}")
    total = format_size(local.total_download_size())
    click.echo(f"Downloads: {len(local.list_downloads())} ({total})")
