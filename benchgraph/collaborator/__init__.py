"""benchgraph collaborator interfaces."""

from .base import Collaborator
from .command import CommandCollaborator

__all__ = ["Collaborator", "CommandCollaborator"]
