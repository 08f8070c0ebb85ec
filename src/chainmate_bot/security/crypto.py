from __future__ import annotations

import os

from cryptography.fernet import Fernet, InvalidToken

# Fernet tokens are urlsafe base64 of a payload starting with version byte 0x80
_FERNET_PREFIX = "gAAAAA"


class SecretDecryptError(RuntimeError):
    pass


def get_fernet(master_key: str | None = None) -> Fernet:
    key = master_key or os.getenv("MASTER_KEY")
    if not key:
        raise RuntimeError("MASTER_KEY env variable is not set")
    return Fernet(key.encode())


def encrypt_secret(secret: str, master_key: str | None = None) -> str:
    return get_fernet(master_key).encrypt(secret.encode()).decode()


def decrypt_secret(secret_enc: str, master_key: str | None = None) -> str:
    try:
        return get_fernet(master_key).decrypt(secret_enc.encode()).decode()
    except InvalidToken as e:
        raise SecretDecryptError("stored secret cannot be decrypted with MASTER_KEY") from e


def is_encrypted(value: str) -> bool:
    return value.startswith(_FERNET_PREFIX)
