"""
bcg configuration model: document loading and validation
"""

from .loader import load_config, load_document
from .validator import validate, validate_resolved

__all__ = ['load_config', 'load_document', 'validate', 'validate_resolved']
