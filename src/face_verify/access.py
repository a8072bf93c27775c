from __future__ import annotations

from .errors import AccessDeniedError
from .face_types import Caller, Professional

VERIFIER_ROLE = "verifier"


def ensure_verifier(caller: Caller) -> Professional:
    """Only professionals holding the verifier role may run identification."""
    if isinstance(caller, Professional) and VERIFIER_ROLE in caller.roles:
        return caller
    raise AccessDeniedError("caller is not allowed to run face verification")
