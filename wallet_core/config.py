# --------------------------------------------------------------
# File: config.py
# Description: Parámetros de configuración leídos del entorno (.env).
# --------------------------------------------------------------
"""Constantes de configuración del núcleo de carteras."""

import os

from dotenv import load_dotenv

load_dotenv()

# Persistencia local de registros cifrados y metadatos.
STORAGE_PATH = os.getenv("STORAGE_PATH", "./_data")
WALLET_DB_FILE = os.getenv("WALLET_DB_FILE", "wallets.json")

# Directorio remoto de carteras.
DIRECTORY_URL = os.getenv("DIRECTORY_URL", "http://localhost:8000/api")
DIRECTORY_TIMEOUT = float(os.getenv("DIRECTORY_TIMEOUT", "10"))

# Copias de seguridad y auditoría.
BACKUP_MIN_INTERVAL_SECONDS = int(os.getenv("BACKUP_MIN_INTERVAL_SECONDS", "3600"))
AUDIT_MIN_SCORE = int(os.getenv("AUDIT_MIN_SCORE", "0"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "human")

# Iteraciones PBKDF2-HMAC-SHA256 de cada etapa de derivación.
KDF_PARAMS = {
    "stretch_iterations": int(os.getenv("KDF_STRETCH_ITERATIONS", "600000")),
    "wrap_iterations": int(os.getenv("KDF_WRAP_ITERATIONS", "100000")),
    "legacy_iterations": int(os.getenv("KDF_LEGACY_ITERATIONS", "300000")),
    "outlen": 32,
    "alg": "pbkdf2-sha256",
}
