"""Brazilian document and phone validation.

CPF (11 digits) and CNPJ (14 digits) both end in two mod-11 check
digits. Sequences of one repeated digit pass the arithmetic but are
never issued, so they are rejected up front.
"""

import re

_NON_DIGITS = re.compile(r"\D+")

_CNPJ_WEIGHTS_1 = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
_CNPJ_WEIGHTS_2 = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)


def only_digits(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def _mod11_digit(digits: str, weights: tuple[int, ...] | range) -> int:
    total = sum(int(d) * w for d, w in zip(digits, weights))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def is_valid_cpf(value: str) -> bool:
    cpf = only_digits(value)
    if len(cpf) != 11 or cpf == cpf[0] * 11:
        return False
    first = _mod11_digit(cpf[:9], range(10, 1, -1))
    second = _mod11_digit(cpf[:10], range(11, 1, -1))
    return cpf[9:] == f"{first}{second}"


def is_valid_cnpj(value: str) -> bool:
    cnpj = only_digits(value)
    if len(cnpj) != 14 or cnpj == cnpj[0] * 14:
        return False
    first = _mod11_digit(cnpj[:12], _CNPJ_WEIGHTS_1)
    second = _mod11_digit(cnpj[:13], _CNPJ_WEIGHTS_2)
    return cnpj[12:] == f"{first}{second}"


def is_valid_tax_id(value: str) -> bool:
    """Accept a checksum-valid CPF or CNPJ, with or without punctuation."""
    digits = only_digits(value)
    if len(digits) == 11:
        return is_valid_cpf(digits)
    if len(digits) == 14:
        return is_valid_cnpj(digits)
    return False


def normalize_phone(value: str | None) -> str | None:
    """Return a 10/11-digit national number (DDD + subscriber) or None.

    A leading 55 country code is dropped when present.
    """
    digits = only_digits(value)
    if len(digits) in (12, 13) and digits.startswith("55"):
        digits = digits[2:]
    if len(digits) not in (10, 11):
        return None
    return digits
