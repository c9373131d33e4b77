"""Errores del flujo de fases de la orden."""


class TransitionError(Exception):
    """Base de los errores al avanzar una orden de fase."""

    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NoNextPhaseError(TransitionError):
    """La orden ya está en la fase terminal (financiera)."""


class ForbiddenTransitionError(TransitionError):
    """El rol del actor no es dueño de la fase actual de la orden."""


class PersistenceError(TransitionError):
    """La escritura en la BD falló; la orden original queda intacta."""

    retryable = True
