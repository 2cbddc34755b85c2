# shared/models/__init__.py
from .class_manager import ClassManager

__all__ = ['ClassManager']
