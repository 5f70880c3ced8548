from backoffice.governance.access_control import (
    AccessControlEvaluator,
    AccessDecision,
    get_access_control,
)
from backoffice.governance.claims import (
    AdminClaims,
    Claims,
    CustomerClaims,
    StoreOwnerClaims,
    claims_to_dict,
    parse_claims,
)

__all__ = [
    "AccessControlEvaluator",
    "AccessDecision",
    "AdminClaims",
    "Claims",
    "CustomerClaims",
    "StoreOwnerClaims",
    "claims_to_dict",
    "get_access_control",
    "parse_claims",
]
