from skillpath.schemas.base import CamelModel

__all__ = ["CamelModel"]
