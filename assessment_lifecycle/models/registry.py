"""
Model registry to ensure proper import order and avoid circular dependencies.
Import all models here in dependency order.
"""

# Import base model first
from assessment_lifecycle.models.base import Base, BaseModel

# Ledger has no dependencies
from assessment_lifecycle.models.status import StatusEntry

# Sessions before the rows that reference them
from assessment_lifecycle.models.session import ResponseSession
from assessment_lifecycle.models.response import QuestionResponse
from assessment_lifecycle.models.review import ReviewComment, JuryScore

# Export all models
__all__ = [
    'Base',
    'BaseModel',
    'StatusEntry',
    'ResponseSession',
    'QuestionResponse',
    'ReviewComment',
    'JuryScore',
]
