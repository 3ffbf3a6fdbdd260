"""
bcg registry collaborators
"""

from .peeringdb import PeeringDBClient, RegistryRecord

__all__ = ['PeeringDBClient', 'RegistryRecord']
