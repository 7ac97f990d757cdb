"""Import all models through registry to ensure proper initialization order."""
from assessment_lifecycle.models.registry import *  # noqa: F401, F403