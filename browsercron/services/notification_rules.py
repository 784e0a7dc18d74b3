"""Custom notification rule evaluation.

Rules match against the run output serialized to compact lowercase JSON
(no spaces after separators), so matching is case-insensitive and a value
may span keys and punctuation. The first enabled rule that matches wins.
"""

import json
from typing import Any, Iterable, Optional, Union

from browsercron.models.task import NotificationRule, RuleType

RuleLike = Union[NotificationRule, dict]

_CONTAINS = {RuleType.TEXT_CONTAINS.value, RuleType.OUTPUT_CONTAINS.value}
_NOT_CONTAINS = {RuleType.TEXT_NOT_CONTAINS.value}


def _coerce(rule: RuleLike) -> NotificationRule:
    if isinstance(rule, NotificationRule):
        return rule
    return NotificationRule.model_validate(rule)


def serialize_output(output: Any) -> str:
    """Compact lowercase JSON text of a run output. None becomes "null"."""
    return json.dumps(output, default=str, ensure_ascii=False, separators=(",", ":")).lower()


def should_notify(rules: Optional[Iterable[RuleLike]], output: Any) -> bool:
    """Return True if any enabled rule matches the output."""
    if not rules:
        return False

    text = serialize_output(output)

    for raw_rule in rules:
        rule = _coerce(raw_rule)
        if not rule.enabled:
            continue

        value = rule.value.lower()
        if rule.type in _CONTAINS and value in text:
            return True
        if rule.type in _NOT_CONTAINS and value not in text:
            return True

    return False
