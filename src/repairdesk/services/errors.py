from __future__ import annotations


class ValidationError(Exception):
    pass


class NotFoundError(ValidationError):
    pass
