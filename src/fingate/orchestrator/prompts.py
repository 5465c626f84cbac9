"""Prompt construction for financial-analysis requests."""

import json
from typing import Optional

from fingate.refdata.models import ReferenceSnapshot
from fingate.schema import GatewayRequest, OperationType


BASE_INSTRUCTIONS = """You are a financial analysis assistant operating behind a compliance gateway.

CONSTRAINTS:
- Use only the request data and market context provided below.
- Do NOT fabricate figures, prices or sources.
- Do NOT give personalised investment advice or trading instructions.
- State uncertainty explicitly when data is insufficient.
"""

OPERATION_INSTRUCTIONS = {
    OperationType.ANALYSIS: """TASK: Answer the analyst's question.
Structure the answer as: Summary, Key drivers, Risks, Open questions.""",

    OperationType.RISK_ASSESSMENT: """TASK: Assess the risk of the named subject.
Cover credit, market, liquidity and operational risk. Finish with an overall
rating of LOW, MODERATE, ELEVATED or HIGH and one sentence of justification.""",

    OperationType.FRAUD_CHECK: """TASK: Review the transaction for fraud indicators.
The gateway's statistical screen already passed it. List any qualitative red
flags (counterparty, purpose, structuring) and recommend APPROVE or REVIEW.""",
}

MAX_HEADLINES = 5


def build_prompt(request: GatewayRequest, snapshot: Optional[ReferenceSnapshot] = None) -> str:
    """
    Build the provider prompt for a request.

    Identical requests produce identical prompts for a given snapshot.
    """
    sections = [
        BASE_INSTRUCTIONS,
        OPERATION_INSTRUCTIONS[request.operation_type],
        "REQUEST DATA:\n" + json.dumps(request.payload, sort_keys=True, indent=2, default=str),
    ]

    if snapshot is not None:
        sections.append(_market_context(snapshot))

    return "\n\n".join(sections)


def _market_context(snapshot: ReferenceSnapshot) -> str:
    lines = [f"MARKET CONTEXT (as of {snapshot.as_of.isoformat()}):"]
    for name, value in sorted(snapshot.market_indicators.items()):
        lines.append(f"- {name}: {value}")
    if snapshot.headlines:
        lines.append("Recent headlines:")
        lines.extend(f"- {h}" for h in snapshot.headlines[:MAX_HEADLINES])
    return "\n".join(lines)
