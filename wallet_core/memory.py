# --------------------------------------------------------------
# File: memory.py
# Description: Borrado de secretos en memoria (best effort).
# --------------------------------------------------------------
"""Utilidades para limpiar buffers con material sensible.

En CPython no existe garantía de borrado: los `str` son inmutables, el
recolector puede haber copiado objetos y las primitivas de `cryptography`
trabajan con copias propias. Solo los `bytearray` controlados por este
paquete se sobrescriben; el resto es un riesgo residual documentado.
"""

from __future__ import annotations

from typing import Optional, Union


def wipe(buffer: Optional[Union[bytearray, memoryview]]) -> None:
    """Sobrescribe con ceros un buffer mutable si existe."""

    if buffer is None:
        return
    for index in range(len(buffer)):
        buffer[index] = 0

