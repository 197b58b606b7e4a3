"""Translate database driver errors into user facing Polish messages."""
import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
NOT_NULL_VIOLATION = "23502"
CHECK_VIOLATION = "23514"
INVALID_TEXT_REPRESENTATION = "22P02"

_MESSAGES = {
    UNIQUE_VIOLATION: "Znaleziono zduplikowany wpis dla unikalnego pola.",
    FOREIGN_KEY_VIOLATION: (
        "Wystąpiło naruszenie klucza obcego. Rekord, do którego próbujesz się odwołać, nie istnieje."
    ),
    INVALID_TEXT_REPRESENTATION: "Podane dane mają nieprawidłowy format (np. nieprawidłowy UUID).",
    CHECK_VIOLATION: "Naruszono ograniczenie sprawdzające.",
    "42703": "W zapytaniu odwołano się do niezdefiniowanej kolumny.",
    "42601": "Wystąpił błąd składni w zapytaniu do bazy danych.",
    "25000": (
        "Transakcja nie powiodła się: wystąpił problem z integralnością danych w transakcji bazodanowej."
    ),
    "08006": "Połączenie z bazą danych nie powiodło się. Baza danych może być niedostępna.",
    "42P01": "Wskazana tabela nie istnieje w bazie danych.",
    "40001": (
        "Błąd serializacji transakcji. Proszę ponowić transakcję, ponieważ nie mogła zostać "
        "ukończona z powodu równoczesnych modyfikacji."
    ),
}

# SQLite reports constraint failures only in the message text
_SQLITE_PATTERNS = (
    ("UNIQUE constraint failed", UNIQUE_VIOLATION),
    ("FOREIGN KEY constraint failed", FOREIGN_KEY_VIOLATION),
    ("NOT NULL constraint failed", NOT_NULL_VIOLATION),
    ("CHECK constraint failed", CHECK_VIOLATION),
)


@dataclass
class DbErrorInfo:
    message: str
    code: Optional[str] = None
    constraint: Optional[str] = None


def get_db_error_code(exc: BaseException) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return str(code)
    text = str(orig)
    for pattern, mapped in _SQLITE_PATTERNS:
        if pattern in text:
            return mapped
    return None


def _diag(exc: BaseException, attr: str) -> Optional[str]:
    diag = getattr(getattr(exc, "orig", None), "diag", None)
    return getattr(diag, attr, None)


def _not_null_column(exc: BaseException) -> Optional[str]:
    column = _diag(exc, "column_name")
    if column:
        return column
    match = re.search(r"NOT NULL constraint failed: \w+\.(\w+)", str(getattr(exc, "orig", "")))
    return match.group(1) if match else None


def get_db_error_message(exc: object) -> DbErrorInfo:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        code = get_db_error_code(exc)
        if code == NOT_NULL_VIOLATION:
            column = _not_null_column(exc)
            return DbErrorInfo(
                message=f"Brakuje wymaganego pola. Kolumna '{column}' nie może być pusta.",
                code=code,
                constraint=column,
            )
        if code in _MESSAGES:
            return DbErrorInfo(
                message=_MESSAGES[code],
                code=code,
                constraint=_diag(exc, "constraint_name"),
            )
        logger.error(f"Unmapped database error ({code}): {exc.orig}")
        return DbErrorInfo(message=f"Wystąpił błąd bazy danych: {exc.orig}", code=code)

    if isinstance(exc, (SQLAlchemyError, Exception)):
        return DbErrorInfo(message=str(exc) or "Wystąpił nieoczekiwany błąd.")

    return DbErrorInfo(message="Wystąpił nieznany błąd.")


def is_unique_violation(exc: BaseException) -> bool:
    return get_db_error_code(exc) == UNIQUE_VIOLATION


def is_foreign_key_violation(exc: BaseException) -> bool:
    return get_db_error_code(exc) == FOREIGN_KEY_VIOLATION
