"""Custom metrics for the Library Circulation MCP Server."""

import logfire

loan_transitions = logfire.metric_counter(
    "library.loans.transitions", description="Loan lifecycle transitions by action"
)

inventory_changes = logfire.metric_counter(
    "library.inventory.changes", description="Available copy changes by direction"
)


def record_loan_transition(action: str, status: str | None) -> None:
    """Record a successful loan transition and any copy movement it implies."""
    loan_transitions.add(1, {"action": action, "status": status or "deleted"})

    if action == "approve":
        inventory_changes.add(1, {"direction": "out"})
    elif action == "validate_return":
        inventory_changes.add(1, {"direction": "in"})
