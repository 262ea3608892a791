from __future__ import annotations


class AppError(Exception):
    # Base class for domain errors (intended, meaningful failures).
    status_code = 500

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra


class InputError(AppError):
    # Unsupported file/format, missing sheet, empty filter result, bad criteria.
    status_code = 400


class NotFoundError(AppError):
    # Referenced campaign/field/submission absent or not owned by the actor.
    status_code = 404
