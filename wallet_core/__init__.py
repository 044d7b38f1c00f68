# --------------------------------------------------------------
# File: __init__.py
# Description: Exposición pública de los módulos del núcleo de carteras.
# --------------------------------------------------------------
"""Inicializa el paquete `wallet_core` y documenta sus módulos principales."""

__all__ = [
    "auditor",
    "backup",
    "config",
    "container",
    "crypto_kdf",
    "crypto_sym",
    "directory",
    "envelope",
    "errors",
    "logging_config",
    "memory",
    "mnemonic_wallet",
    "models",
    "password_policy",
    "recovery",
    "storage",
]
