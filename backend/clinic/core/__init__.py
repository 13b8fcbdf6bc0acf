# Core package initialization
# Configuration, errors, paging and security shared by every layer

from . import config, exceptions, pagination, security

__all__ = [
    "config",
    "exceptions",
    "pagination",
    "security",
]
