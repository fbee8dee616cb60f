from typing import List, Literal, Optional

from db.models import OrderTotals, ShippingStatus, TaxStatus
from utils.formatting import format_inr

CALCULATING = "Calculating…"
NEEDS_ADDRESS = "Calculate after adding an address"
CANNOT_CALCULATE = "Cannot calculate"


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows, each a list of cell values (stringified).
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all left ('l').

    Returns:
        str: Markdown formatted table, "" when there are no rows.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = [str(h) for h in headers]
    rows = [[str(cell) for cell in row] for row in rows]

    if aligns is None:
        aligns = ["l"] * len(headers)
    elif len(aligns) != len(headers):
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {"l": ":---", "c": ":---:", "r": "---:"}
    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join(align_map[a] for a in aligns) + " |",
    ]
    lines += ["| " + " | ".join(row) + " |" for row in rows]
    return "\n".join(lines)


def _percent(rate_percent) -> str:
    return f"{rate_percent.normalize():f}%"


def shipping_label(totals: OrderTotals) -> str:
    if totals.needs_address:
        return NEEDS_ADDRESS
    if totals.shipping_pending:
        return CALCULATING
    label = format_inr(totals.total_shipping_fee)
    failed = sum(1 for s in totals.shipping if s.status is ShippingStatus.UNAVAILABLE)
    if failed:
        label += f" ({failed} item(s): {CANNOT_CALCULATE.lower()})"
    return label


def render_totals(totals: OrderTotals, title: str = "Order Summary") -> str:
    """Summary block shared by the cart and payment screens."""
    rows = [["Subtotal", format_inr(totals.purchase_subtotal)]]
    if totals.trial_shipping_fee > 0:
        rows.append(["Trial Fee", format_inr(totals.trial_shipping_fee)])
    rows.append(["Shipping", shipping_label(totals)])

    if totals.tax_status is TaxStatus.LOADING:
        rows.append(["GST", CALCULATING])
    elif totals.tax_status is TaxStatus.UNAVAILABLE:
        rows.append(["GST", "Not applied (rates unavailable)"])
    else:
        for line in totals.tax.breakdown:
            rows.append(
                [f"GST {line.category} ({_percent(line.rate_percent)})", format_inr(line.amount)]
            )
        rows.append(["GST Total", format_inr(totals.total_tax, force_decimals=True)])

    payable = format_inr(totals.grand_total, force_decimals=True)
    if not totals.is_final:
        payable = f"{CALCULATING} (so far {payable})"
    rows.append(["**Amount Payable**", f"**{payable}**"])

    return f"### {title}\n\n" + generate_markdown_table(["", "Amount"], rows, ["l", "r"])
