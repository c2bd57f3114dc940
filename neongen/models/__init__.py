# Database models package
from neongen.models.style import StyleRecord

__all__ = [
    "StyleRecord",
]
