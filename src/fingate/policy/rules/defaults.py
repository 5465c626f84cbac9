"""Built-in compliance ruleset, used when no ruleset file is configured.

Same document shape as a ruleset file, see ``fingate.policy.loader``.
"""

# 13-19 digits, optionally grouped by spaces or dashes (PAN / account numbers)
CARD_NUMBER_PATTERN = r"\b(?:\d[ -]?){12,18}\d\b"

SUPPORTED_CURRENCIES = ["USD", "EUR", "GBP", "INR", "JPY", "SGD", "CHF"]

LARGE_AMOUNT_REVIEW_THRESHOLD = 1_000_000

DEFAULT_RULESET = {
    "rules": [
        {
            "id": "payload_size_limit",
            "check": "max_payload_bytes",
            "params": {"limit": 16384},
            "severity": "BLOCKING",
            "description": "Payload exceeds 16 KiB",
        },
        {
            "id": "analysis_requires_prompt",
            "check": "required_fields",
            "params": {"fields": ["prompt"]},
            "operations": ["ANALYSIS"],
            "severity": "BLOCKING",
            "description": "Analysis requests must include a prompt",
        },
        {
            "id": "risk_assessment_requires_subject",
            "check": "required_fields",
            "params": {"fields": ["subject"]},
            "operations": ["RISK_ASSESSMENT"],
            "severity": "BLOCKING",
            "description": "Risk assessments must name a subject",
        },
        {
            "id": "fraud_check_requires_transaction",
            "check": "required_fields",
            "params": {"fields": ["amount", "counterparty"]},
            "operations": ["FRAUD_CHECK"],
            "severity": "BLOCKING",
            "description": "Fraud checks must include amount and counterparty",
        },
        {
            "id": "amount_must_be_numeric",
            "check": "numeric_fields",
            "params": {"fields": ["amount"]},
            "severity": "BLOCKING",
            "description": "Amount must be a non-negative number",
        },
        {
            "id": "no_raw_card_numbers",
            "check": "pattern_absent",
            "params": {"pattern": CARD_NUMBER_PATTERN},
            "severity": "BLOCKING",
            "description": "Payload contains what looks like a card or account number",
        },
        {
            "id": "no_market_abuse",
            "check": "forbidden_terms",
            "params": {
                "terms": [
                    "insider information",
                    "insider tip",
                    "front-run",
                    "front running",
                    "pump and dump",
                    "spoof orders",
                    "wash trade",
                ]
            },
            "severity": "BLOCKING",
            "description": "Request solicits market-abuse assistance",
        },
        {
            "id": "supported_currency",
            "check": "allowed_values",
            "params": {"field": "currency", "values": SUPPORTED_CURRENCIES},
            "severity": "BLOCKING",
            "description": "Currency is not supported",
        },
        {
            "id": "large_amount_review",
            "check": "max_amount",
            "params": {"limit": LARGE_AMOUNT_REVIEW_THRESHOLD},
            "severity": "WARNING",
            "description": "Amount above manual review threshold",
        },
    ]
}
