"""
Domain package for the batch rotator.

Exports the token and report models shared by the store, the rotation
transaction and the CLI.
"""

from batch_rotator.domain.models import UNASSIGNED_BATCH, RotationReport, Token

__all__ = [
    "RotationReport",
    "Token",
    "UNASSIGNED_BATCH",
]
