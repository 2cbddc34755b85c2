# shared/models/class_manager.py
"""
SINGLE SOURCE for Class resolution, display names and next-class mapping.
DEPENDS ON: Django, shared.constants
"""
import re

LEVEL_PATTERN = re.compile(r'\d+')


class ClassManager:
    """Manager for Class operations. Use this instead of direct Class references."""

    @staticmethod
    def display_name(name, section=None):
        """'Class 7' + 'A' -> 'Class 7 (A)'."""
        return f"{name} ({section})" if section else name

    @staticmethod
    def level_number(name):
        match = LEVEL_PATTERN.search(name or '')
        return int(match.group()) if match else None

    @staticmethod
    def next_class_name(name):
        """'Class 7' -> 'Class 8'. Names without a number map to themselves."""
        level = ClassManager.level_number(name)
        if level is None:
            return name
        return LEVEL_PATTERN.sub(str(level + 1), name, count=1)

    @staticmethod
    def get_next_class(class_instance, classes=None):
        """
        Find the class one level up with the same section.
        Falls back to the same class when no such class exists.
        """
        if class_instance is None:
            return None

        target_name = ClassManager.next_class_name(class_instance.name)
        if target_name == class_instance.name:
            return class_instance

        if classes is None:
            from core.models import Class
            classes = Class.objects.filter(name=target_name)

        for candidate in classes:
            if candidate.name == target_name and (candidate.section or '') == (class_instance.section or ''):
                return candidate
        return class_instance

