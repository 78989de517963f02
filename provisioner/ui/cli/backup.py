"""
CLI commands for SSH key backup & restore.

Thin wrappers over ``provisioner.core.services.ssh_backup``.

Usage::

    provision backup ssh
    provision backup ssh --output ssh-backup.b64
    provision restore ssh https://gist.githubusercontent.com/<user>/<id>/raw/<file>
    provision restore ssh --file ssh-backup.b64
"""

from __future__ import annotations

import json
import sys
from datetime import datetime
from pathlib import Path

import click

PASSPHRASE_ENV = "PROVISION_BACKUP_PASSPHRASE"


@click.group()
def backup() -> None:
    """Backup — encrypted copies of credentials."""


@click.group()
def restore() -> None:
    """Restore — bring back credentials from an encrypted backup."""


@backup.command("ssh")
@click.option("--output", "-o", "output", type=click.Path(dir_okay=False), default=None,
              help="Write the encoded backup to FILE instead of uploading a gist.")
@click.option("--ssh-dir", type=click.Path(file_okay=False), default="~/.ssh",
              show_default=True, help="Directory to back up.")
@click.option("--passphrase", envvar=PASSPHRASE_ENV, prompt="Encryption passphrase",
              hide_input=True, confirmation_prompt=True,
              help=f"Encryption passphrase (prompted; or ${PASSPHRASE_ENV}).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def backup_ssh(output: str | None, ssh_dir: str, passphrase: str, as_json: bool) -> None:
    """Encrypt ~/.ssh and store it as a secret GitHub gist.

    Examples:

        provision backup ssh

        provision backup ssh --output ~/ssh-backup.b64
    """
    from provisioner.core.errors import BackupError
    from provisioner.core.services.ssh_backup import build_backup, upload_gist

    source = Path(ssh_dir).expanduser()
    result: dict = {"source": str(source)}
    try:
        encoded = build_backup(source, passphrase)
        if output:
            target = Path(output).expanduser()
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(encoded + "\n", encoding="ascii")
            target.chmod(0o600)
            result["file"] = str(target)
        else:
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            result["gist_url"] = upload_gist(encoded, f"SSH Backup {stamp}")
    except (BackupError, OSError) as e:
        if as_json:
            click.echo(json.dumps({"error": str(e)}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.secho("✅ SSH backup created", fg="green", bold=True)
    if "file" in result:
        click.echo(f"   File: {result['file']}")
    else:
        click.echo(f"   Gist: {result['gist_url']}")
        click.echo("   Restore with the gist's raw URL:")
        click.echo("     provision restore ssh https://gist.githubusercontent.com/<user>/<id>/raw/<file>")
    click.secho("   Keep the passphrase safe; it cannot be recovered.", fg="yellow")


@restore.command("ssh")
@click.argument("url", required=False)
@click.option("--file", "-f", "file_path", type=click.Path(exists=True, dir_okay=False),
              default=None, help="Restore from a local backup file instead of a URL.")
@click.option("--home", type=click.Path(file_okay=False), default="~", show_default=True,
              help="Home directory to restore .ssh into.")
@click.option("--passphrase", envvar=PASSPHRASE_ENV, prompt="Decryption passphrase",
              hide_input=True, help=f"Decryption passphrase (prompted; or ${PASSPHRASE_ENV}).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def restore_ssh(
    url: str | None,
    file_path: str | None,
    home: str,
    passphrase: str,
    as_json: bool,
) -> None:
    """Restore ~/.ssh from a gist raw URL or a local backup file.

    An existing ~/.ssh is moved to ~/.ssh_backup_<timestamp> first.
    """
    from provisioner.core.errors import BackupError
    from provisioner.core.services.ssh_backup import download, restore_backup

    if bool(url) == bool(file_path):
        message = "Pass exactly one of URL or --file."
        if as_json:
            click.echo(json.dumps({"error": message}, indent=2))
        else:
            click.secho(f"❌ {message}", fg="red", err=True)
        sys.exit(2)

    try:
        if url:
            encoded = download(url)
        else:
            encoded = Path(file_path).read_text(encoding="ascii", errors="replace")
        result = restore_backup(encoded, passphrase, Path(home).expanduser())
    except (BackupError, OSError) as e:
        if as_json:
            click.echo(json.dumps({"error": str(e)}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.secho(f"✅ Restored {result['ssh_dir']}", fg="green", bold=True)
    if result["previous"]:
        click.echo(f"   Previous .ssh moved to {result['previous']}")
    for name in result["files"]:
        click.echo(f"   • {name}")
