"""Fixed assistant messages and summary formatting."""

from ..models.protocol import SummaryTurn

CLOSING_MESSAGE = (
    "Thank you for answering these questions. Your physician will review this "
    "summary before your appointment."
)

FINAL_COMMENTS_PROMPT = (
    "Before we finish, do you have any final questions or comments for your physician? "
    "If not, you can answer \"no\"."
)


def _section(title: str, items) -> str:
    if not items:
        return ""
    lines = "\n".join(f"- {item}" for item in items)
    return f"{title}:\n{lines}"


def format_summary(summary: SummaryTurn) -> str:
    """Render a summary turn as one readable assistant message."""
    parts = [
        f"Summary: {summary.summary}",
        _section("Positives", summary.positives),
        _section("Negatives", summary.negatives),
        _section("Physical findings", summary.physical_findings),
        _section("Investigations", summary.investigations),
        f"Assessment: {summary.assessment}" if summary.assessment else "",
        _section("Plan", summary.plan),
    ]
    return "\n\n".join(part for part in parts if part)
