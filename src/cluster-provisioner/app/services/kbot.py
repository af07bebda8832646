"""Bot identity (kbot) SSH keypair generation."""

from __future__ import annotations

import secrets

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from shared.models import Cluster

KBOT_USER = "kbot"
KBOT_SSH_KEY_TITLE = "kbot-ssh-key"


def create_ssh_keypair() -> tuple[str, str]:
    """Generate an ed25519 keypair.

    Returns:
        Tuple of (OpenSSH private key PEM, OpenSSH public key line)
    """
    key = Ed25519PrivateKey.generate()
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.OpenSSH,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_line = key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    ).decode()
    return private_pem, public_line


def initialize_bot(cluster: Cluster) -> None:
    """Attach a fresh kbot identity to the cluster record."""
    private_key, public_key = create_ssh_keypair()
    cluster.git_auth.private_key = private_key
    cluster.git_auth.public_key = public_key
    if not cluster.vault_auth.kbot_password:
        cluster.vault_auth.kbot_password = secrets.token_urlsafe(24)
