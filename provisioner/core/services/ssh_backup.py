"""
SSH key backup — encrypted archive of ~/.ssh stored as a secret gist.

Backup: tar.gz of ``~/.ssh`` → AES-256-GCM (PBKDF2-SHA256 key) →
base64 text → ``gh gist create``.

Restore: base64 text (gist raw URL or local file) → decrypt → move any
existing ``~/.ssh`` aside → extract → fix permissions.

Envelope layout (before base64):

    PROVSSH_v1 | salt(16) | iv(12) | ciphertext+tag
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import os
import shutil
import tarfile
import tempfile
import urllib.request
from datetime import datetime
from pathlib import Path, PurePosixPath

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from provisioner.core.errors import BackupError
from provisioner.core.services.subprocess_runner import run_command

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────

MAGIC = b"PROVSSH_v1"
KDF_ITERATIONS = 480_000
SALT_LEN = 16
IV_LEN = 12
MIN_PASSPHRASE = 4

GIST_RAW_PREFIX = "https://gist.githubusercontent.com/"
ARCHIVE_ROOT = ".ssh"
DOWNLOAD_TIMEOUT = 30


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


# ── Crypto ───────────────────────────────────────────────────────────


def _derive_key(passphrase: str, salt: bytes, iterations: int = KDF_ITERATIONS) -> bytes:
    """Derive a 256-bit key from passphrase using PBKDF2-SHA256."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt(data: bytes, passphrase: str) -> bytes:
    if not passphrase or len(passphrase) < MIN_PASSPHRASE:
        raise BackupError(f"Passphrase must be at least {MIN_PASSPHRASE} characters")
    salt = os.urandom(SALT_LEN)
    iv = os.urandom(IV_LEN)
    key = _derive_key(passphrase, salt)
    return MAGIC + salt + iv + AESGCM(key).encrypt(iv, data, None)


def decrypt(envelope: bytes, passphrase: str) -> bytes:
    if not envelope.startswith(MAGIC):
        raise BackupError("Not an SSH backup (bad header)")
    offset = len(MAGIC)
    salt = envelope[offset:offset + SALT_LEN]
    iv = envelope[offset + SALT_LEN:offset + SALT_LEN + IV_LEN]
    ciphertext = envelope[offset + SALT_LEN + IV_LEN:]
    if len(salt) != SALT_LEN or len(iv) != IV_LEN or not ciphertext:
        raise BackupError("SSH backup is truncated")
    key = _derive_key(passphrase, salt)
    try:
        return AESGCM(key).decrypt(iv, ciphertext, None)
    except InvalidTag:
        raise BackupError("Decryption failed: wrong passphrase or corrupted backup") from None


def encode(envelope: bytes) -> str:
    return base64.b64encode(envelope).decode("ascii")


def decode(text: str) -> bytes:
    try:
        return base64.b64decode("".join(text.split()), validate=True)
    except (binascii.Error, ValueError):
        raise BackupError("Backup is not valid base64") from None


# ── Archive ──────────────────────────────────────────────────────────


def create_archive(ssh_dir: Path) -> bytes:
    """tar.gz of ``ssh_dir`` with members rooted at ``.ssh/``."""
    if not ssh_dir.is_dir():
        raise BackupError(f"{ssh_dir} does not exist")
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        tar.add(ssh_dir, arcname=ARCHIVE_ROOT)
    return buf.getvalue()


def _check_members(tar: tarfile.TarFile) -> list[tarfile.TarInfo]:
    members = tar.getmembers()
    for member in members:
        path = PurePosixPath(member.name)
        if path.is_absolute() or ".." in path.parts:
            raise BackupError(f"Refusing to extract unsafe path: {member.name}")
        if path.parts[:1] != (ARCHIVE_ROOT,):
            raise BackupError(f"Unexpected archive member outside {ARCHIVE_ROOT}/: {member.name}")
        if member.issym() or member.islnk():
            target = PurePosixPath(member.linkname)
            if target.is_absolute() or ".." in target.parts:
                raise BackupError(f"Refusing to extract link escaping {ARCHIVE_ROOT}/: {member.name}")
        elif not (member.isfile() or member.isdir()):
            raise BackupError(f"Refusing to extract special file: {member.name}")
    return members


def extract_archive(archive: bytes, home: Path) -> Path:
    """Extract into ``home``; returns the restored ``.ssh`` directory."""
    try:
        with tarfile.open(fileobj=io.BytesIO(archive), mode="r:gz") as tar:
            members = _check_members(tar)
            tar.extractall(home, members=members, filter="data")
    except tarfile.TarError as e:
        raise BackupError(f"Backup archive is corrupted: {e}") from e
    return home / ARCHIVE_ROOT


def fix_permissions(ssh_dir: Path) -> None:
    """Directories 700, files 600, public keys 644."""
    ssh_dir.chmod(0o700)
    for path in ssh_dir.rglob("*"):
        if path.is_symlink():
            continue
        if path.is_dir():
            path.chmod(0o700)
        elif path.suffix == ".pub":
            path.chmod(0o644)
        else:
            path.chmod(0o600)


# ── GitHub gist transport ───────────────────────────────────────────


def check_gh() -> None:
    """gh must be installed and authenticated."""
    if shutil.which("gh") is None:
        raise BackupError("GitHub CLI (gh) is not installed. Install it with: provision run -s gh")
    result = run_command(["gh", "auth", "status"], timeout=30)
    if not result["ok"]:
        raise BackupError("Not authenticated with GitHub CLI. Run: gh auth login")


def upload_gist(encoded: str, description: str) -> str:
    """Create a secret gist holding ``encoded``. Returns the gist URL."""
    check_gh()
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / f"ssh_backup_{_timestamp()}.tar.gz.enc.b64"
        path.write_text(encoded, encoding="ascii")
        result = run_command(["gh", "gist", "create", str(path), "--desc", description], timeout=120)
    if not result["ok"]:
        raise BackupError(f"Failed to create gist: {result['error']}")
    url = result.get("stdout", "").strip().splitlines()
    if not url:
        raise BackupError("Failed to create gist: gh returned no URL")
    return url[-1].strip()


def validate_gist_url(url: str) -> None:
    if not url.startswith(GIST_RAW_PREFIX):
        raise BackupError(f"Invalid URL: must start with {GIST_RAW_PREFIX}")


def download(url: str, timeout: int = DOWNLOAD_TIMEOUT) -> str:
    validate_gist_url(url)
    req = urllib.request.Request(url, headers={"User-Agent": "provisioner/1.0"})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            text = resp.read().decode("ascii", errors="replace")
    except OSError as e:
        raise BackupError(f"Failed to download backup: {e}") from e
    if not text.strip():
        raise BackupError("Downloaded backup is empty")
    return text


# ── Operations ───────────────────────────────────────────────────────


def build_backup(ssh_dir: Path, passphrase: str) -> str:
    """Archive, encrypt and encode ``ssh_dir``. Returns base64 text."""
    archive = create_archive(ssh_dir)
    encoded = encode(encrypt(archive, passphrase))
    logger.info("Backed up %s (%d bytes archived)", ssh_dir, len(archive))
    return encoded


def restore_backup(encoded: str, passphrase: str, home: Path) -> dict:
    """Decrypt ``encoded`` and restore ``~/.ssh`` under ``home``.

    An existing ``.ssh`` is moved to ``.ssh_backup_<timestamp>`` first.
    Decryption and member checks happen before anything on disk is touched.
    """
    archive = decrypt(decode(encoded), passphrase)
    try:
        with tarfile.open(fileobj=io.BytesIO(archive), mode="r:gz") as tar:
            _check_members(tar)
    except tarfile.TarError as e:
        raise BackupError(f"Backup archive is corrupted: {e}") from e

    ssh_dir = home / ARCHIVE_ROOT
    moved_to: Path | None = None
    if ssh_dir.exists():
        moved_to = home / f".ssh_backup_{_timestamp()}"
        ssh_dir.rename(moved_to)
        logger.info("Moved existing %s to %s", ssh_dir, moved_to)

    restored = extract_archive(archive, home)
    fix_permissions(restored)
    files = sorted(str(p.relative_to(restored)) for p in restored.rglob("*") if p.is_file())
    logger.info("Restored %d file(s) into %s", len(files), restored)
    return {
        "ssh_dir": str(restored),
        "previous": str(moved_to) if moved_to else None,
        "files": files,
    }
