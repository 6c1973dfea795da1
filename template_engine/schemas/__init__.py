from template_engine.schemas.patch import Patch, ReorderTarget, INNER_TEXT, REORDER

__all__ = ["Patch", "ReorderTarget", "INNER_TEXT", "REORDER"]
