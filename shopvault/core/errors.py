"""
ShopVault — Error kinds

Every failure the core raises is a ShopVaultError carrying a stable ``kind``
and a human-readable message. The API maps ``status_code`` onto responses;
the CLI prints ``kind`` and message.
"""
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError


class ShopVaultError(Exception):
    kind = "ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "detail": self.message}


class NotFound(ShopVaultError):
    kind = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier=None):
        if identifier is not None:
            message = f"{resource} with identifier '{identifier}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class InsufficientStock(ShopVaultError):
    kind = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, product_id: str, available: int, requested: int, name: str | None = None):
        label = name or product_id
        super().__init__(
            f"Insufficient stock for '{label}': requested={requested}, available={available}"
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested

    def to_dict(self) -> dict:
        body = super().to_dict()
        body.update(product_id=self.product_id, available=self.available, requested=self.requested)
        return body


class InvalidTransition(ShopVaultError):
    kind = "INVALID_TRANSITION"
    status_code = 422

    def __init__(self, current: str, requested: str, message: str | None = None):
        super().__init__(message or f"Cannot transition from {current} to {requested}")
        self.current = current
        self.requested = requested


class ValidationFailed(ShopVaultError):
    kind = "VALIDATION_FAILED"
    status_code = 400

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationFailed":
        """Build from a pydantic ValidationError."""
        errors = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        summary = ", ".join(f"{e['loc']}: {e['msg']}" for e in errors)
        return cls(f"Validation failed: {summary}", errors)

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.errors:
            body["errors"] = self.errors
        return body


class DuplicateKey(ShopVaultError):
    kind = "DUPLICATE_KEY"
    status_code = 409

    def __init__(self, resource: str, field: str | None = None):
        if field:
            message = f"{resource} with this {field} already exists"
        else:
            message = f"{resource} already exists"
        super().__init__(message)
        self.field = field


class Transient(ShopVaultError):
    """Store I/O failure; the operation is safe to retry."""

    kind = "TRANSIENT"
    status_code = 503

    @classmethod
    def from_db(cls, exc) -> "Transient":
        """Build from a SQLAlchemy OperationalError or InterfaceError."""
        return cls(f"Database error: {str(getattr(exc, 'orig', None) or exc)[:200]}")


class StaleDataError(Transient):
    """Raised when an optimistic lock conflict is detected:
    the version_id in the DB changed between our read and update,
    meaning another concurrent transaction won the race.
    """

    def __init__(self, message: str = "Optimistic lock conflict: version changed concurrently."):
        super().__init__(message)


@contextmanager
def translate_db_errors(resource: str = "Entry", field: str | None = None):
    """Re-raise driver/SQLAlchemy failures as ShopVault error kinds."""
    try:
        yield
    except IntegrityError as exc:
        raise DuplicateKey(resource, field) from exc
    except (OperationalError, InterfaceError) as exc:
        raise Transient.from_db(exc) from exc
