"""Protocol definitions for pluggable collaborators."""

from .corrector import Corrector, Validator
from .detector import Detector

__all__ = ["Corrector", "Detector", "Validator"]
