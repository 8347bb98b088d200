"""Domain errors raised by the services and the request guard.

Each error carries the HTTP status and the generic, user-visible message
it maps to. The handlers registered in ``corredora.main`` turn them into
``{"error": message}`` JSON bodies; nothing else about the failure is sent
to the client.
"""

from fastapi import status


class CorredoraError(Exception):
    """Base class for errors that surface at the HTTP boundary."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Error interno del servidor"
    headers: dict[str, str] | None = None

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MalformedRequest(CorredoraError):
    """A required body field is missing or has the wrong shape."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Solicitud inválida"


class InvalidCredentials(CorredoraError):
    """Unknown email or wrong password; deliberately indistinguishable."""

    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Credenciales inválidas"


class InvalidRefreshToken(CorredoraError):
    """Refresh token absent, expired, revoked or bound to a deleted account."""

    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Refresh token inválido"


class Unauthenticated(CorredoraError):
    """Missing, malformed, tampered or expired access token."""

    status_code = status.HTTP_401_UNAUTHORIZED
    message = "No autorizado"
    headers = {"WWW-Authenticate": "Bearer"}


class Forbidden(CorredoraError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Requiere rol de administrador"


class NotFound(CorredoraError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Recurso no encontrado"


class Conflict(CorredoraError):
    status_code = status.HTTP_409_CONFLICT
    message = "El recurso ya existe"


class Unavailable(CorredoraError):
    """The durable store timed out or could not be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "Servicio no disponible, intenta de nuevo"


class InvalidToken(Exception):
    """Raised by the access token verifier; the guard maps it to Unauthenticated."""
