"""Request-body validation helpers with pt-BR caller-facing messages."""

from pydantic_core import PydanticCustomError

ERROR_TYPE = "nexus_invalid"
DEFAULT_MESSAGE = "Dados inválidos"


def invalid(message: str) -> PydanticCustomError:
    return PydanticCustomError(ERROR_TYPE, message)


def bounded_text(value, *, min_length: int = 1, max_length: int, message: str) -> str:
    """Strip and length-check a text field, raising the field's own message."""
    if not isinstance(value, str):
        raise invalid(message)
    value = value.strip()
    if not min_length <= len(value) <= max_length:
        raise invalid(message)
    return value


def first_error_message(errors: list[dict]) -> str:
    """Message for the first violated field of a pydantic error list."""
    if not errors:
        return DEFAULT_MESSAGE
    first = errors[0]
    if first.get("type") == ERROR_TYPE:
        return first.get("msg") or DEFAULT_MESSAGE
    loc = [str(p) for p in first.get("loc", ()) if p != "body"]
    if first.get("type") == "missing" and loc:
        return f"Campo obrigatório: {loc[-1]}"
    return DEFAULT_MESSAGE
