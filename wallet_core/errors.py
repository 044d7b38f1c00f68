# --------------------------------------------------------------
# File: errors.py
# Description: Taxonomía de errores del núcleo criptográfico de carteras.
# --------------------------------------------------------------
"""Excepciones públicas lanzadas en los límites de cada componente."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from wallet_core.models import AuditReport
    from wallet_core.recovery import RecoveryRun

# Mensaje único para no revelar si la cuenta existe.
INVALID_CREDENTIALS_MESSAGE = "Passphrase inválida o cuenta no encontrada."
CORRUPTED_BACKUP_MESSAGE = "Copia de seguridad corrupta."


class WalletCoreError(Exception):
    """Raíz de todos los errores del paquete."""


class KeyDerivationError(WalletCoreError):
    """La primitiva de derivación no está disponible o la entrada es inválida."""


class DecryptionError(WalletCoreError):
    """Fallo AEAD: passphrase incorrecta o datos manipulados, sin distinguir."""

    def __init__(self, message: str = INVALID_CREDENTIALS_MESSAGE) -> None:
        super().__init__(message)


class InvalidSeedError(WalletCoreError):
    """La frase semilla no supera la verificación de checksum BIP-39."""


class AddressMismatchError(WalletCoreError):
    """Las direcciones re-derivadas no coinciden con las registradas."""


class CorruptedBackupError(WalletCoreError):
    """El checksum de la copia de seguridad no coincide con su contenido."""

    def __init__(self, message: str = CORRUPTED_BACKUP_MESSAGE) -> None:
        super().__init__(message)


class RateLimitError(WalletCoreError):
    """Se ha solicitado una copia de seguridad antes del intervalo mínimo."""

    def __init__(self, retry_after: float) -> None:
        super().__init__(
            f"Copia de seguridad reciente; reintenta en {int(retry_after) + 1} s."
        )
        self.retry_after = retry_after


class WeakPassphraseError(WalletCoreError):
    """La passphrase no cumple la política mínima de robustez."""

    def __init__(self, reasons: List[str], score: int) -> None:
        msg = "La passphrase no es suficientemente robusta:\n- " + "\n- ".join(reasons)
        super().__init__(msg)
        self.reasons = reasons
        self.score = score


class InsecureEnvironmentError(WalletCoreError):
    """La auditoría de seguridad no alcanza la puntuación exigida."""

    def __init__(self, report: "AuditReport", min_score: int) -> None:
        super().__init__(
            f"Entorno inseguro: puntuación {report.score}/100 < {min_score}."
        )
        self.report = report
        self.min_score = min_score


class WalletExistsError(WalletCoreError):
    """Ya existe una cartera local para la identidad; no se sobrescribe."""


class BackupError(WalletCoreError):
    """No existe registro local que respaldar o restaurar."""


class DirectoryError(WalletCoreError):
    """Fallo de transporte o respuesta inesperada del directorio remoto."""


class RecoveryError(WalletCoreError):
    """Único error que emerge de `recover()`; envuelve la causa original."""

    def __init__(
        self,
        message: str = INVALID_CREDENTIALS_MESSAGE,
        *,
        run: Optional["RecoveryRun"] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.run = run
        self.cause = cause
