"""
mockapi Registry Module

Storage for mock definitions and their usage log.
"""

from .models import MockDefinition
from .store import MockRegistry, MockNotFoundError, DuplicateMockError
from .usage import UsageLog

__all__ = [
    'MockDefinition',
    'MockRegistry',
    'MockNotFoundError',
    'DuplicateMockError',
    'UsageLog',
]
