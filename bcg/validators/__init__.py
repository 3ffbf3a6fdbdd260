"""
bcg validation collaborators
"""

from .rpki import RPKIState, RPKIValidationResult, RPKIValidator, VRPEntry

__all__ = ['RPKIState', 'RPKIValidationResult', 'RPKIValidator', 'VRPEntry']
