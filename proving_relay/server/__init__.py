from .error_surface import (
    ErrorSurface as ErrorSurface,
    Escalation as Escalation,
)
