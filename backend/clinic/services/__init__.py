# Services package initialization
# Visit workflows and the rules they compose

from . import clinical_aggregate, scheduling, visit_service

__all__ = [
    "clinical_aggregate",
    "scheduling",
    "visit_service",
]
