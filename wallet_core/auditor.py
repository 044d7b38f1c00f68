# --------------------------------------------------------------
# File: auditor.py
# Description: Auditoría en tiempo de ejecución de la postura de seguridad.
# --------------------------------------------------------------
"""Comprobaciones de capacidades criptográficas y de exposición de secretos."""

from __future__ import annotations

import logging
import os
import re
from typing import Callable, Iterable, List, Mapping, Optional
from urllib.parse import urlparse

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from wallet_core.errors import InsecureEnvironmentError
from wallet_core.models import AuditReport

logger = logging.getLogger(__name__)

LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}
SENSITIVE_KEYS = ("passphrase", "password", "mnemonic", "private_key", "privatekey", "seed", "secret")
PRIVATE_KEY_RE = re.compile(r"(?:0x)?[0-9a-fA-F]{64}")

PENALTY_INSECURE_CONTEXT = 30
PENALTY_AEAD = 30
PENALTY_RNG = 20
PENALTY_KDF = 20
PENALTY_SECRET_EXPOSURE = 20

StorageSource = Callable[[], Mapping[str, str]]


class SecurityAuditor:
    """Calcula una puntuación 0-100 restando puntos por cada hallazgo.

    Args:
        directory_url (str | None): URL del directorio remoto; define si el
            contexto de transporte es seguro.
        storage_sources (Iterable[StorageSource]): Almacenes ajenos a la
            cartera (preferencias, cachés) donde no deben aparecer secretos.
        wordlist (Iterable[str]): Lista BIP-39 para detectar frases expuestas.

    """

    def __init__(
        self,
        directory_url: Optional[str] = None,
        storage_sources: Iterable[StorageSource] = (),
        wordlist: Iterable[str] = (),
    ) -> None:
        self.directory_url = directory_url
        self.storage_sources = list(storage_sources)
        self._wordlist = set(wordlist)

    def _check_secure_context(self, report: AuditReport) -> bool:
        if not self.directory_url:
            report.recommendations.append("Configura DIRECTORY_URL con HTTPS.")
            return True
        parsed = urlparse(self.directory_url)
        if parsed.scheme == "https":
            return True
        if parsed.scheme == "http" and parsed.hostname in LOCAL_HOSTS:
            report.recommendations.append(
                "Entorno de desarrollo: en producción usa HTTPS y dominios seguros."
            )
            return True
        report.warnings.append("El directorio remoto no usa un contexto seguro (HTTPS).")
        report.recommendations.append("Despliega el directorio detrás de HTTPS.")
        return False

    @staticmethod
    def _check_aead() -> bool:
        try:
            key = AESGCM.generate_key(bit_length=256)
            nonce = os.urandom(12)
            aes = AESGCM(key)
            return aes.decrypt(nonce, aes.encrypt(nonce, b"audit", None), None) == b"audit"
        except (UnsupportedAlgorithm, InvalidTag, ValueError):
            return False

    @staticmethod
    def _check_rng() -> bool:
        try:
            sample = os.urandom(32)
        except NotImplementedError:
            return False
        return len(sample) == 32 and any(sample)

    @staticmethod
    def _check_kdf() -> bool:
        try:
            PBKDF2HMAC(
                algorithm=hashes.SHA256(), length=32, salt=b"audit-salt", iterations=1
            ).derive(b"audit")
        except UnsupportedAlgorithm:
            return False
        return True

    def _looks_like_mnemonic(self, value: str) -> bool:
        words = re.findall(r"[a-z]+", value.lower())
        if len(words) < 12 or not self._wordlist:
            return False
        return sum(1 for word in words if word in self._wordlist) >= 12

    def _find_exposed_secrets(self) -> List[str]:
        findings: List[str] = []
        for source in self.storage_sources:
            for key, value in source().items():
                key_l = str(key).lower()
                value_s = str(value).strip()
                if any(p in key_l for p in SENSITIVE_KEYS):
                    findings.append(key)
                elif PRIVATE_KEY_RE.fullmatch(value_s) or self._looks_like_mnemonic(value_s):
                    findings.append(key)
        return findings

    def audit(self) -> AuditReport:
        """Ejecuta todas las comprobaciones y devuelve el informe."""

        report = AuditReport()
        score = 100

        checks = {
            "secure_context": self._check_secure_context(report),
            "aead": self._check_aead(),
            "rng": self._check_rng(),
            "kdf": self._check_kdf(),
        }
        if not checks["secure_context"]:
            score -= PENALTY_INSECURE_CONTEXT
        if not checks["aead"]:
            score -= PENALTY_AEAD
            report.warnings.append("AES-GCM no disponible: el cifrado estaría comprometido.")
            report.recommendations.append("Actualiza OpenSSL/cryptography.")
        if not checks["rng"]:
            score -= PENALTY_RNG
            report.warnings.append("No hay generador aleatorio criptográfico disponible.")
        if not checks["kdf"]:
            score -= PENALTY_KDF
            report.warnings.append("PBKDF2-HMAC-SHA256 no disponible.")

        exposed = self._find_exposed_secrets()
        checks["no_exposed_secrets"] = not exposed
        if exposed:
            score -= PENALTY_SECRET_EXPOSURE
            report.warnings.append(
                f"Datos con aspecto de secreto en almacenamiento ajeno ({len(exposed)} claves)."
            )
            report.recommendations.append("Mueve los secretos al almacén cifrado de carteras.")

        report.checks = checks
        report.score = max(0, min(100, score))
        logger.info("Auditoría de seguridad: %s/100", report.score)
        return report

    def enforce(self, min_score: int) -> AuditReport:
        """Lanza `InsecureEnvironmentError` si la puntuación no llega al mínimo."""

        report = self.audit()
        if report.score < min_score:
            raise InsecureEnvironmentError(report, min_score)
        return report
