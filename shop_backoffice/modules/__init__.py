# shop_backoffice/modules/__init__.py

from .actions import ActionResult, failed

__all__ = ["ActionResult", "failed"]
