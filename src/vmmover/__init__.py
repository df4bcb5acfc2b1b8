"""
vmmover - Move Azure virtual machines between regions
"""

__version__ = "0.1.0"

from .core import MigrationError, VmMover

__all__ = ["MigrationError", "VmMover"]
