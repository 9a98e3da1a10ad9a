"""CRUD operations module."""

from .rules import (
    get_active_rules,
    create_rule,
    record_rule_usage,
)
from .tracking import (
    client_has_visited,
    create_utm_tracking,
    create_journey_step,
    create_click,
    create_mouse_movement,
)


__all__ = [
    # Rule Store
    "get_active_rules",
    "create_rule",
    "record_rule_usage",

    # Event Store
    "client_has_visited",
    "create_utm_tracking",
    "create_journey_step",
    "create_click",
    "create_mouse_movement",
]
