from enum import Enum

from errors import ValidationError


class Language(str, Enum):
    """Programming languages supported by the compiler and mini projects"""
    JAVA = 'java'
    PYTHON = 'python'

    @classmethod
    def parse(cls, value) -> 'Language':
        """Case-insensitive lookup; unknown tags are rejected instead of dropped."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            tag = value.strip().lower()
            for language in cls:
                if language.value == tag:
                    return language
        raise ValidationError(f"Unsupported language: {value!r} (expected java or python)")

    @property
    def display_name(self) -> str:
        return self.value.capitalize()
