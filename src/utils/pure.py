from typing import List, Literal, Optional, Sequence

from checkout.pricing import Quote

_ALIGN = {"l": ":---", "c": ":---:", "r": "---:"}


def generate_markdown_table(
    headers: Optional[Sequence[object]],
    rows: Sequence[Sequence[object]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Render rows as a Markdown table for the MarkdownViewer widgets.

    Without headers, the first row is used as the header row. Columns are
    centred unless ``aligns`` says otherwise.
    """
    if not rows:
        return ""
    if not headers:
        headers, rows = rows[0], rows[1:]

    cells = [[str(v).replace("|", "\\|") for v in row] for row in rows]
    head = [str(h) for h in headers]
    aligns = aligns or ["c"] * len(head)
    if len(aligns) != len(head):
        raise ValueError("Length of aligns must match number of headers.")

    lines = [
        "| " + " | ".join(head) + " |",
        "| " + " | ".join(_ALIGN[a] for a in aligns) + " |",
    ]
    lines += ["| " + " | ".join(row) + " |" for row in cells]
    return "\n".join(lines)


def taka(amount: Optional[float]) -> str:
    if amount is None:
        return "-"
    return f"৳{amount:,.2f}"


def quote_markdown(q: Quote) -> str:
    """Subtotal/delivery/total block, plus pay-now and due once a method is chosen."""
    rows = [
        ["Subtotal", taka(q.subtotal)],
        ["Delivery Charge", taka(q.delivery_fee)],
        ["Total", taka(q.total)],
    ]
    if q.settled:
        rows += [["Pay Now", taka(q.pay_now)], ["Due", taka(q.due)]]
    return generate_markdown_table(["", "Amount"], rows, ["l", "r"])
