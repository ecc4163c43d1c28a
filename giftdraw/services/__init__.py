from giftdraw.services.assignment import (
    AssignmentError,
    InsufficientParticipantsError,
    InvalidInputError,
    generate_assignments,
    is_valid_assignment,
)
from giftdraw.services.security import AdminAuthError
from giftdraw.services.session_flow import (
    DrawError,
    DuplicateName,
    PermissionDenied,
    RegistrationClosed,
    SessionFlowError,
    SessionNotFound,
)

__all__ = [
    "AssignmentError",
    "InsufficientParticipantsError",
    "InvalidInputError",
    "generate_assignments",
    "is_valid_assignment",
    "AdminAuthError",
    "DrawError",
    "DuplicateName",
    "PermissionDenied",
    "RegistrationClosed",
    "SessionFlowError",
    "SessionNotFound",
]
