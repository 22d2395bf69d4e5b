"""
Routing evaluation for compiled workflows.

Router rules are walked in authored order and, within a rule, conditions
in authored order. The first matching condition wins. If any condition
exists and none matches, the message falls back.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from convoflow.compiler.models import RouteCondition, RoutingTable

logger = logging.getLogger(__name__)

ROUTE_MATCHED = "matched"
ROUTE_DEFAULT = "default"


@dataclass(frozen=True)
class RouteDecision:
    """
    Outcome of routing evaluation.

    Attributes:
        type: "matched" or "default"
        condition: The matching condition, if any
        rule_id: Router node that owns the matching condition
        should_fallback: Conditions existed but none matched
    """

    type: str
    condition: "RouteCondition | None" = None
    rule_id: str | None = None
    should_fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "condition": (
                self.condition.model_dump(mode="json", by_alias=True) if self.condition else None
            ),
            "rule_id": self.rule_id,
            "should_fallback": self.should_fallback,
        }


def _keywords(value: str | list[str]) -> list[str]:
    parts = value.split(",") if isinstance(value, str) else value
    return [str(k).strip().lower() for k in parts if str(k).strip()]


def _matches_contains(message: str, condition: "RouteCondition") -> bool:
    value = condition.value
    if not isinstance(value, str) or not value:
        return False
    return value.lower() in message


def _matches_keyword(message: str, condition: "RouteCondition") -> bool:
    return any(keyword in message for keyword in _keywords(condition.value))


def _matches_intent(message: str, condition: "RouteCondition") -> bool:
    # Reserved condition type: accepted in graphs, never matches
    return False


MATCHERS: dict[str, Callable[[str, "RouteCondition"], bool]] = {
    "contains": _matches_contains,
    "keyword": _matches_keyword,
    "intent": _matches_intent,
}


def evaluate_routing(message: str, routing: "RoutingTable") -> RouteDecision:
    """Evaluate routing rules against a user message."""
    lowered = message.lower()
    for rule in routing.conditions:
        for condition in rule.conditions:
            matcher = MATCHERS.get(condition.type)
            if matcher is None:
                logger.debug(f"[routing] Skipping unknown condition type '{condition.type}'")
                continue
            if matcher(lowered, condition):
                return RouteDecision(type=ROUTE_MATCHED, condition=condition, rule_id=rule.id)

    return RouteDecision(type=ROUTE_DEFAULT, should_fallback=routing.has_conditions)
