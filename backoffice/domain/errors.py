from __future__ import annotations


class BackofficeError(Exception):
    status_code: int = 400
    code: str = "backoffice_error"


class ValidationError(BackofficeError):
    status_code = 400
    code = "validation_error"


class InvalidTransition(BackofficeError):
    status_code = 400
    code = "invalid_transition"


class InvalidProductType(BackofficeError):
    status_code = 400
    code = "invalid_product_type"


class InvalidQuantity(BackofficeError):
    status_code = 400
    code = "invalid_quantity"


class InvalidPricing(BackofficeError):
    status_code = 400
    code = "invalid_pricing"


class InactiveStore(BackofficeError):
    status_code = 400
    code = "inactive_store"


class InvalidRole(BackofficeError):
    status_code = 403
    code = "invalid_role"


class MissingTenantBinding(BackofficeError):
    status_code = 403
    code = "missing_tenant_binding"


class Forbidden(BackofficeError):
    status_code = 403
    code = "forbidden"


class NotFound(BackofficeError):
    status_code = 404
    code = "not_found"


class IrreversibleState(BackofficeError):
    status_code = 409
    code = "irreversible_state"


class ConcurrentModification(BackofficeError):
    status_code = 409
    code = "concurrent_modification"
