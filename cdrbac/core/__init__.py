from .config import Config
from .engine import RbacEngine

__all__ = ["Config", "RbacEngine"]
