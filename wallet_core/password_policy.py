# --------------------------------------------------------------
# File: password_policy.py
# Description: Reglas de validación de passphrases para carteras.
# --------------------------------------------------------------
"""Utilidades para evaluar la robustez de passphrases (puntuación 0-7)."""

from __future__ import annotations

import re
import secrets
from typing import List, Optional, Sequence, Tuple

MIN_LENGTH = 12
MIN_SCORE = 4
MAX_SCORE = 7

COMMON = (
    "password",
    "passphrase",
    "123456",
    "qwerty",
    "letmein",
)

CHARACTER_CLASSES = (
    re.compile(r"[a-z]"),
    re.compile(r"[A-Z]"),
    re.compile(r"\d"),
    re.compile(r"[^a-zA-Z0-9]"),
)


def contains_user_info(passphrase: str, email: str | None) -> bool:
    """Indica si la passphrase contiene fragmentos del email (4+ caracteres)."""

    if not email:
        return False
    local_part = email.split("@", 1)[0].lower()
    fragments = {local_part, *re.split(r"[._+-]", local_part)}
    lowered = passphrase.lower()
    return any(len(part) >= 4 and part in lowered for part in fragments)


def class_count(passphrase: str) -> int:
    """Número de clases presentes: minúsculas, mayúsculas, dígitos y símbolos."""

    return sum(1 for rx in CHARACTER_CLASSES if rx.search(passphrase))


def has_long_repetition(passphrase: str, max_run: int = 3) -> bool:
    """`True` si un mismo carácter aparece más de `max_run` veces seguidas."""

    return re.search(rf"(.)\1{{{max_run},}}", passphrase) is not None


def common_pattern(passphrase: str) -> Optional[str]:
    """Devuelve el primer patrón común contenido en la passphrase."""

    lowered = passphrase.lower()
    for pattern in COMMON:
        if pattern in lowered:
            return pattern
    return None


def check_passphrase_strength(
    passphrase: str, *, email: str | None = None
) -> Tuple[bool, List[str], int]:
    """Evalúa la passphrase y devuelve cumplimiento, motivos y puntuación.

    La puntuación suma de 1 a 3 puntos por longitud (12, 16 y 20 caracteres) y
    un punto por cada clase de carácter; los patrones comunes restan 2 y la
    reutilización del email o las repeticiones largas restan 1. Esas
    penalizaciones solo informan: se acepta con 12 o más caracteres y una
    puntuación mínima de 4.

    Args:
        passphrase (str): Passphrase propuesta por el usuario.
        email (str | None): Email para evitar reutilizar identificadores.

    Returns:
        Tuple[bool, List[str], int]: Aceptación, observaciones para el usuario y
        puntuación acumulada entre 0 y 7.

    """

    reasons: List[str] = []
    score = 0

    length = len(passphrase)
    if length < MIN_LENGTH:
        reasons.append(f"Longitud mínima {MIN_LENGTH}.")
    elif length >= 20:
        score += 3
    elif length >= 16:
        score += 2
    else:
        score += 1

    score += class_count(passphrase)

    pattern = common_pattern(passphrase)
    if pattern:
        reasons.append(f'Evita palabras comunes como "{pattern}".')
        score -= 2

    if contains_user_info(passphrase, email):
        reasons.append("No incluyas partes de tu email/usuario.")
        score -= 1

    if has_long_repetition(passphrase):
        reasons.append("Evita repeticiones largas del mismo carácter.")
        score -= 1

    score = max(0, min(MAX_SCORE, score))
    if score < MIN_SCORE:
        reasons.append(
            "Usa más longitud y mezcla minúsculas, mayúsculas, dígitos y símbolos."
        )
    ok = length >= MIN_LENGTH and score >= MIN_SCORE
    return ok, reasons, score


def generate_passphrase(wordlist: Sequence[str], word_count: int = 4) -> str:
    """Genera una passphrase aleatoria que cumple la política.

    Args:
        wordlist (Sequence[str]): Palabras candidatas (p. ej. lista BIP-39).
        word_count (int): Número de palabras a combinar.

    Returns:
        str: Passphrase con palabras capitalizadas, guiones y cuatro dígitos.

    """

    while True:
        words = [secrets.choice(wordlist).capitalize() for _ in range(word_count)]
        number = f"{secrets.randbelow(10_000):04d}"
        candidate = "-".join(words) + "-" + number
        ok, _, _ = check_passphrase_strength(candidate)
        if ok:
            return candidate
