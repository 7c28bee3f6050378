"""
Command-line interface for skillwarden.
"""

import json
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

import click

from .advisories import fixable_skills, summarize
from .errors import NotFoundError, SkillwardenError
from .models import Severity
from .pinning import pin_skill, unpin_skill
from .reports import (
    format_advisories,
    format_diff,
    format_fixable,
    format_pack_audit,
    format_updates,
)
from .settings import get_settings, load_settings
from .sources import diff_skill
from .updates import check_updates
from .workspace import Workspace

logger = logging.getLogger(__name__)


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn domain errors into a message on stderr and exit status 1."""
    try:
        yield
    except NotFoundError as e:
        click.echo(f"Not found: {e}", err=True)
        sys.exit(1)
    except SkillwardenError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _echo_json(payload: dict) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.toml (defaults to the platform config directory)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: Optional[Path]):
    """skillwarden - skill integrity and version drift checks."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings(config_path) if config_path else get_settings()
    workspace = Workspace(settings)
    ctx.obj = workspace
    ctx.call_on_close(workspace.close)


@main.command()
@click.argument("identity")
@click.pass_obj
def pin(workspace: Workspace, identity: str):
    """Pin an installed skill to its current content hash."""
    with _reported_errors():
        pinned = pin_skill(workspace.manifest_store(), identity)
    click.echo(f"Pinned {identity} at {pinned}")


@main.command()
@click.argument("identity")
@click.pass_obj
def unpin(workspace: Workspace, identity: str):
    """Remove the pin from an installed skill."""
    with _reported_errors():
        previous = unpin_skill(workspace.manifest_store(), identity)
    if previous is None:
        click.echo(f"{identity} is not pinned")
    else:
        click.echo(f"Unpinned {identity} (was {previous})")


@main.command()
@click.argument("identity")
@click.option(
    "--old-content",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Read the old document from this file instead of the installed copy",
)
@click.option(
    "--new-content",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Read the new document from this file instead of fetching it",
)
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_obj
def diff(
    workspace: Workspace,
    identity: str,
    old_content: Optional[Path],
    new_content: Optional[Path],
    as_json: bool,
):
    """Show section-level changes between installed and latest versions."""
    with _reported_errors():
        result = diff_skill(
            workspace.resolver(), identity, old_override=old_content, new_override=new_content
        )
    if as_json:
        _echo_json(result.model_dump(mode="json"))
    else:
        click.echo(format_diff(result))


@main.command("audit-pack")
@click.argument("pack_path")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_obj
def audit_pack(workspace: Workspace, pack_path: str, as_json: bool):
    """Compare bundled skill versions in a pack against the registry."""
    with _reported_errors():
        report = workspace.auditor().audit_pack(pack_path)
    if as_json:
        _echo_json(report.model_dump(mode="json"))
    else:
        click.echo(format_pack_audit(report))


@main.command()
@click.option("--skill", "skills", multiple=True, help="Only advisories for this skill identity")
@click.option(
    "--severity",
    type=click.Choice([s.value for s in Severity]),
    default=None,
    help="Only advisories of this severity",
)
@click.option("--fix", "show_fix", is_flag=True, help="List skills with a patched version")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_obj
def advisories(
    workspace: Workspace,
    skills: Tuple[str, ...],
    severity: Optional[str],
    show_fix: bool,
    as_json: bool,
):
    """List active security advisories."""
    with _reported_errors():
        repo = workspace.advisories()
        if skills:
            found = repo.get_advisories_for_many(skills)
            if severity:
                found = [a for a in found if a.severity.value == severity]
        else:
            found = repo.get_active_advisories(Severity(severity) if severity else None)

    if as_json:
        _echo_json(
            {
                "summary": summarize(found).model_dump(),
                "advisories": [
                    dict(a.model_dump(mode="json"), fix_available=a.fix_available)
                    for a in found
                ],
                "fixable_skills": fixable_skills(found),
            }
        )
        return
    click.echo(format_advisories(found))
    if show_fix and found:
        click.echo()
        click.echo(format_fixable(found))


@main.command()
@click.argument("identities", nargs=-1)
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_obj
def updates(workspace: Workspace, identities: Tuple[str, ...], as_json: bool):
    """Check installed skills for newer registry versions (pins are honoured)."""
    with _reported_errors():
        report = check_updates(workspace.manifest_store(), workspace.ledger(), identities or None)
    if as_json:
        _echo_json(report.model_dump(mode="json"))
    else:
        click.echo(format_updates(report))


@main.command()
@click.pass_obj
def serve(workspace: Workspace):
    """Start the skillwarden MCP server on stdio."""
    run_stdio_server(workspace)


def run_stdio_server(workspace: Optional[Workspace] = None):
    """Run the server in stdio mode."""
    from .server import SkillwardenServer

    server = SkillwardenServer(workspace)
    mcp = server.create_fastmcp_server()

    logger.info("skillwarden MCP server starting in stdio mode")
    try:
        mcp.run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("skillwarden MCP server interrupted by user")


if __name__ == "__main__":
    main()
