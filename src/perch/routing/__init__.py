"""Route table for podlet endpoints."""

from perch.routing.route import Route, RouteMatch
from perch.routing.router import Router, normalize_path

__all__ = ["Route", "RouteMatch", "Router", "normalize_path"]
