# --------------------------------------------------------------
# File: test_password_policy.py
# Description: Pruebas para la verificación de robustez de passphrases.
# --------------------------------------------------------------

import pytest

from wallet_core.mnemonic_wallet import MnemonicWalletDeriver
from wallet_core.password_policy import (
    MIN_SCORE,
    check_passphrase_strength,
    generate_passphrase,
)


def test_policy_accepts_strong_pass():
    """Valida que una passphrase sólida cumpla la política definida.

    Returns:
        None: Las aserciones revisan la puntuación y las recomendaciones.
    """
    ok, reasons, score = check_passphrase_strength(
        "Str0ng_Ph@se!!Kept", email="user@test.com"
    )
    assert ok
    assert score == 6
    assert not reasons


def test_policy_max_score_for_long_mixed():
    ok, _, score = check_passphrase_strength("Tr0ub4dor&3xyz!Extra-Long")
    assert ok
    assert score == 7


@pytest.mark.parametrize(
    "pw",
    [
        "short7!",  # menor a 12 caracteres
        "alllowercaseletters",  # solo una clase
        "PASSWORDONLY",  # solo mayúsculas y palabra común
        "123456789012",  # solo dígitos
        "user1234test",  # contiene fragmentos del email
    ],
)
def test_policy_rejects_weak(pw):
    """Comprueba que distintas passphrases débiles sean rechazadas.

    Args:
        pw (str): Passphrase candidata proporcionada por el parámetro parametrizado.

    Returns:
        None: Las aserciones verifican la presencia de motivos de rechazo.
    """
    ok, reasons, _ = check_passphrase_strength(pw, email="user@test.com")
    assert not ok
    assert reasons


def test_policy_length_below_minimum_is_rejected_even_with_all_classes():
    ok, reasons, score = check_passphrase_strength("Ab1!Ab1!")
    assert not ok
    assert any("12" in r for r in reasons)
    assert score == 4


def test_policy_penalizes_common_patterns():
    ok, reasons, score = check_passphrase_strength("MyPassword2024!")
    assert not ok
    assert any("password" in r for r in reasons)
    assert score == 3


def test_repetition_deducts_but_does_not_block():
    """Las repeticiones largas restan un punto y se informan al usuario.

    Returns:
        None: Las aserciones comprueban puntuación, aceptación y observaciones.
    """
    ok, reasons, score = check_passphrase_strength("AAAaaaa1111!!!!", email=None)
    assert score == 4
    assert ok
    assert any("repeticiones" in r.lower() for r in reasons)


def test_common_word_is_feedback_when_score_is_enough():
    ok, reasons, score = check_passphrase_strength("MyPassword#2024xyz")
    assert score == 4
    assert ok
    assert any("password" in r for r in reasons)


def test_email_fragment_deducts_one_point():
    _, _, with_email = check_passphrase_strength("Marina-Sol#2024", email="marina@b.com")
    _, _, without = check_passphrase_strength("Marina-Sol#2024")
    assert with_email == without - 1


def test_underscore_counts_as_symbol():
    _, _, score = check_passphrase_strength("lowercase_only1")
    assert score == 4


def test_score_is_clamped_to_range():
    _, _, low = check_passphrase_strength("")
    assert low == 0
    assert MIN_SCORE == 4


def test_generate_passphrase_meets_policy():
    wordlist = MnemonicWalletDeriver().wordlist
    for _ in range(5):
        candidate = generate_passphrase(wordlist)
        ok, reasons, _ = check_passphrase_strength(candidate)
        assert ok, reasons
        parts = candidate.split("-")
        assert len(parts) == 5
        assert parts[-1].isdigit() and len(parts[-1]) == 4
        assert all(word[0].isupper() for word in parts[:-1])
