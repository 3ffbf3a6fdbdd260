"""
bcg policy compiler: reference tables, program types, compiler and evaluator
"""

from .compiler import PolicyCompiler, compile_model
from .evaluator import PolicyEvaluator, Route, RouteDecision
from .program import (
    CompiledModel,
    CompiledPeer,
    FilterProgram,
    RejectReason,
    SessionDescriptor,
)

__all__ = [
    'PolicyCompiler', 'compile_model', 'PolicyEvaluator', 'Route', 'RouteDecision',
    'CompiledModel', 'CompiledPeer', 'FilterProgram', 'RejectReason', 'SessionDescriptor',
]
