# tesorito/errors.py
from __future__ import annotations

from typing import List, Optional


class PosError(Exception):
    """Errore di dominio: la route lo traduce in una risposta JSON."""

    status_code = 400

    def __init__(self, message: str, details: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_payload(self) -> dict:
        payload: dict = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidRequestError(PosError):
    status_code = 400


class ConflictError(PosError):
    """Transizione o operazione non ammessa nello stato corrente."""

    status_code = 400


class InsufficientStockError(PosError):
    status_code = 400


class NotFoundError(PosError):
    status_code = 404


class AuthError(PosError):
    status_code = 401


class PermissionDeniedError(PosError):
    status_code = 403
