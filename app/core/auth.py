"""
Caller identity for student endpoints.

Authentication happens at the gateway, which forwards the resolved student
id in a header (settings.STUDENT_ID_HEADER). This module only reads and
validates that header.
"""
from typing import Optional

from fastapi import Header

from app.core.config import settings
from app.core.error_responses import ErrorMessages, raise_unauthorized


def get_current_student_id(
    student_id_header: Optional[str] = Header(
        default=None, alias=settings.STUDENT_ID_HEADER
    ),
) -> int:
    """
    Dependency returning the calling student's id.

    Raises:
        HTTPException: 401 if the header is missing or not a positive integer
    """
    if student_id_header is None or not student_id_header.strip():
        raise_unauthorized(ErrorMessages.STUDENT_ID_MISSING)

    try:
        student_id = int(student_id_header.strip())
    except ValueError:
        raise_unauthorized(ErrorMessages.STUDENT_ID_INVALID)

    if student_id <= 0:
        raise_unauthorized(ErrorMessages.STUDENT_ID_INVALID)
    return student_id
