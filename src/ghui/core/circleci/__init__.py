"""
CircleCI integration for ghui (optional).
"""

from ghui.core.circleci.client import (
    CircleCIClient,
    extract_job_number_from_url,
    get_circleci_token,
    is_circleci_url,
)

__all__ = [
    "CircleCIClient",
    "extract_job_number_from_url",
    "get_circleci_token",
    "is_circleci_url",
]
