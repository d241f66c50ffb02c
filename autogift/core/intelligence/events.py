"""Auto-gift event catalog (staged through the platform outbox)."""

from __future__ import annotations

AUTOGIFT_RULE_CREATED = "autogift.rule.created"
AUTOGIFT_RULE_INTELLIGENCE_UPDATED = "autogift.rule.intelligence_updated"
AUTOGIFT_GIFT_OUTCOME_RECORDED = "autogift.gift_outcome.recorded"

EVENT_CATALOG = {
    AUTOGIFT_RULE_CREATED: {
        "version": "v1",
        "payload": {
            "rule_id": "int",
            "user_id": "int",
            "recipient_id": "int",
            "date_type": "str",
            "closeness_level": "int",
        },
    },
    AUTOGIFT_RULE_INTELLIGENCE_UPDATED: {
        "version": "v1",
        "payload": {
            "rule_id": "int",
            "user_id": "int",
            "recipient_id": "int",
            "closeness_level": "int",
        },
    },
    AUTOGIFT_GIFT_OUTCOME_RECORDED: {
        "version": "v1",
        "payload": {
            "user_id": "int",
            "category": "str",
            "amount": "float",
            "was_successful": "bool",
            "recipient_type": "str",
            "season": "str",
            "gifted_on": "date",
        },
    },
}
