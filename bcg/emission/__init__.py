"""
bcg artifact emission: renderer contract, writer and daemon control
"""

from .bird_control import BirdControl
from .interface import ArtifactRenderer, ArtifactWriter, WriteResult
from .json_renderer import JSONRenderer

__all__ = ['ArtifactRenderer', 'ArtifactWriter', 'WriteResult', 'JSONRenderer', 'BirdControl']
