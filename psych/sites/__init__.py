"""Site configuration — typed targets loaded from sites.yaml."""

from .registry import SiteRegistry, SiteTarget

__all__ = ["SiteRegistry", "SiteTarget"]
