"""Custom error definitions for API exceptions."""
from fastapi import HTTPException
from starlette import status


class BadRequest(HTTPException):
    def __init__(self, detail: str = "Nieprawidłowe dane wejściowe."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class Unauthorized(HTTPException):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class InvalidCredentialsError(HTTPException):
    def __init__(self, detail: str = "Nieprawidłowy email lub hasło."):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class Forbidden(HTTPException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class UserNotVerifiedError(HTTPException):
    def __init__(self, detail: str = "Adres e-mail nie został zweryfikowany."):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class UserBannedError(HTTPException):
    def __init__(self, detail: str = "Konto zostało zablokowane."):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Nie znaleziono zasobu."):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class UserNotFoundError(NotFound):
    def __init__(self, detail: str = "Użytkownik nie istnieje."):
        super().__init__(detail=detail)


class Conflict(HTTPException):
    def __init__(self, detail: str = "Konflikt danych."):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class UserAlreadyExistsError(Conflict):
    def __init__(self, detail: str = "Użytkownik o tym adresie email już istnieje."):
        super().__init__(detail=detail)


class ServerError(HTTPException):
    def __init__(self, detail: str = "Wystąpił nieoczekiwany błąd."):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
