"""``wpfortify baseline``: record local checksums for third-party extensions.

Extensions not distributed through WordPress.org have no published
checksums. Once their files have been reviewed, a baseline can be taken
and is then used in their place (when ``targets.third_party`` is on).

Without ``--plugin``/``--theme`` a baseline is taken for every installed
extension whose update source is not WordPress.org. With ``--delete`` the
selected baselines are removed instead; explicit keys may name extensions
that are no longer installed.

Exit Codes:
    0 : Every requested baseline was written (or deleted).
    2 : An extension or baseline was not found, or a baseline could not be written.
"""

from __future__ import annotations

import json
import sys

import click

from wpfortify.cli import common
from wpfortify.exceptions import BaselineError
from wpfortify.manifest.baseline import BaselineStore
from wpfortify.site.installation import Installation
from wpfortify.site.models import ExtensionInfo


def _select(
    installation: Installation,
    plugins: tuple[str, ...],
    themes: tuple[str, ...],
) -> tuple[list[ExtensionInfo], list[str]]:
    """Resolve the requested extensions; return them and the unknown ids."""
    if not plugins and not themes:
        found = installation.discover_plugins() + installation.discover_themes()
        return [ext for ext in found if not ext.trusted], []

    selected: list[ExtensionInfo] = []
    missing: list[str] = []
    for key in plugins:
        plugin = installation.find_plugin(key)
        if plugin is None:
            missing.append(f"plugin {key}")
        else:
            selected.append(plugin)
    for stylesheet in themes:
        theme = installation.find_theme(stylesheet)
        if theme is None:
            missing.append(f"theme {stylesheet}")
        else:
            selected.append(theme)
    return selected, missing


@click.command("baseline")
@click.argument(
    "root",
    type=click.Path(exists=True, file_okay=False),
    required=False,
    default=None,
)
@click.option("--plugin", "plugins", multiple=True,
              help="Plugin basename, e.g. my-plugin/my-plugin.php (repeatable).")
@click.option("--theme", "themes", multiple=True, help="Theme stylesheet (repeatable).")
@click.option("--delete", "delete", is_flag=True, help="Remove the selected baselines instead of writing them.")
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format: text (default) or json.",
)
@click.pass_context
def baseline_command(
    ctx: click.Context,
    root: str | None,
    plugins: tuple[str, ...],
    themes: tuple[str, ...],
    delete: bool,
    output_format: str,
) -> None:
    """Record checksum baselines for extensions under ROOT."""
    settings = common.cli_settings(ctx, root=root)
    installation = Installation(settings.root)
    store = BaselineStore(settings.state_dir)

    if delete:
        sys.exit(_delete_baselines(store, installation, plugins, themes, output_format))

    extensions, missing = _select(installation, plugins, themes)
    written: list[dict[str, str]] = []
    failed: list[dict[str, str]] = [{"extension": m, "error": "not installed"} for m in missing]

    for extension in extensions:
        try:
            path = store.generate(extension)
        except BaselineError as exc:
            failed.append({"extension": extension.key, "error": str(exc)})
            continue
        written.append({
            "kind": extension.kind,
            "key": extension.key,
            "version": extension.version,
            "path": str(path),
        })

    if output_format == "json":
        click.echo(json.dumps({"written": written, "failed": failed}, indent=2))
    else:
        if not extensions and not missing:
            click.echo("No third-party extensions found.")
        for entry in written:
            click.echo(f"Baseline written for {entry['key']} ({entry['version'] or 'no version'}).")
        for entry in failed:
            click.echo(f"Error: {entry['extension']}: {entry['error']}", err=True)

    sys.exit(common.EXIT_FAILED if failed else common.EXIT_CLEAN)


def _delete_baselines(
    store: BaselineStore,
    installation: Installation,
    plugins: tuple[str, ...],
    themes: tuple[str, ...],
    output_format: str,
) -> int:
    """Remove baselines and return the exit code."""
    if plugins or themes:
        targets = [("plugins", key) for key in plugins] + [("themes", key) for key in themes]
    else:
        extensions, _ = _select(installation, plugins, themes)
        targets = [(ext.kind, ext.key) for ext in extensions]

    deleted: list[dict[str, str]] = []
    failed: list[dict[str, str]] = []
    for kind, key in targets:
        if store.delete(kind, key):
            deleted.append({"kind": kind, "key": key})
        else:
            failed.append({"extension": key, "error": "no baseline"})

    if output_format == "json":
        click.echo(json.dumps({"deleted": deleted, "failed": failed}, indent=2))
    else:
        for entry in deleted:
            click.echo(f"Baseline deleted for {entry['key']}.")
        for entry in failed:
            click.echo(f"Error: {entry['extension']}: {entry['error']}", err=True)

    return common.EXIT_FAILED if failed else common.EXIT_CLEAN
