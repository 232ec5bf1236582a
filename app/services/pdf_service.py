import io
from datetime import datetime

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from app.config import settings
from app.models.invoice import Invoice

PAGE_W, PAGE_H = A4
MARGIN = 18 * mm

INK = HexColor("#1F2937")
MUTED = HexColor("#6B7280")
ACCENT = HexColor("#B45309")
RULE = HexColor("#D1D5DB")
ALERT = HexColor("#B91C1C")


def _money(value: float) -> str:
    return f"{value:,.2f}"


class _Page:
    """Top-down cursor over a reportlab canvas that starts a new page when it runs out of room."""

    def __init__(self, c: canvas.Canvas, title: str):
        self.c = c
        self.title = title
        self.y = PAGE_H - MARGIN

    def need(self, height: float) -> None:
        if self.y - height < MARGIN:
            self.c.showPage()
            self.y = PAGE_H - MARGIN
            self.text(self.title, size=9, color=MUTED)
            self.gap(4 * mm)

    def gap(self, height: float) -> None:
        self.y -= height

    def text(self, value: str, x: float = MARGIN, size: float = 10, bold: bool = False, color=INK) -> None:
        self.c.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        self.c.setFillColor(color)
        self.c.drawString(x, self.y, value)

    def right(self, value: str, x: float, size: float = 10, bold: bool = False, color=INK) -> None:
        self.c.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        self.c.setFillColor(color)
        self.c.drawRightString(x, self.y, value)

    def rule(self) -> None:
        self.c.setStrokeColor(RULE)
        self.c.setLineWidth(0.5)
        self.c.line(MARGIN, self.y, PAGE_W - MARGIN, self.y)

    def row(self, cells: list[tuple[str, float, str]], size: float = 9.5, bold: bool = False, color=INK) -> None:
        """cells: (text, x, align) with align 'l' or 'r'."""
        self.need(6 * mm)
        for value, x, align in cells:
            if align == "r":
                self.right(value, x, size=size, bold=bold, color=color)
            else:
                self.text(value, x, size=size, bold=bold, color=color)
        self.gap(5.5 * mm)


def _seller_block(page: _Page) -> None:
    page.text(settings.SELLER_NAME, size=18, bold=True, color=ACCENT)
    page.gap(6 * mm)
    for line in (settings.SELLER_ADDRESS, settings.SELLER_PHONE, settings.SELLER_EMAIL):
        if line:
            page.text(line, size=9, color=MUTED)
            page.gap(4.2 * mm)
    if settings.SELLER_GSTIN:
        page.text(f"GSTIN: {settings.SELLER_GSTIN}", size=9, color=MUTED)
        page.gap(4.2 * mm)


def render_invoice(invoice: Invoice) -> bytes:
    order = invoice.order
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(f"Invoice {invoice.invoice_number}")
    page = _Page(c, f"Invoice {invoice.invoice_number} (continued)")
    right_edge = PAGE_W - MARGIN

    _seller_block(page)
    page.gap(4 * mm)
    page.right("INVOICE", right_edge, size=16, bold=True)
    page.text(f"Bill to: {order.customer_name}", size=11, bold=True)
    page.gap(5 * mm)
    page.right(f"Invoice no: {invoice.invoice_number}", right_edge, size=9.5)
    if order.customer and order.customer.address:
        page.text(order.customer.address.replace("\n", ", "), size=9, color=MUTED)
    page.gap(4.5 * mm)
    page.right(f"Invoice date: {invoice.invoice_date.isoformat()}", right_edge, size=9.5)
    if order.customer and order.customer.phone:
        page.text(order.customer.phone, size=9, color=MUTED)
    page.gap(4.5 * mm)
    page.right(f"Order: {order.order_number} ({order.order_date.isoformat()})", right_edge, size=9.5)
    page.gap(8 * mm)

    col_qty, col_price, col_total = 125 * mm, 155 * mm, right_edge
    page.row(
        [("Item", MARGIN, "l"), ("Qty", col_qty, "r"), ("Unit price", col_price, "r"), ("Amount", col_total, "r")],
        bold=True,
    )
    page.gap(-2.5 * mm)
    page.rule()
    page.gap(5 * mm)
    for item in order.items:
        label = " ".join(p for p in (item.product_type, item.form, item.size) if p)
        page.row([
            (label[:60], MARGIN, "l"),
            (f"{item.quantity:g} {item.unit}", col_qty, "r"),
            (_money(item.unit_price), col_price, "r"),
            (_money(item.line_total), col_total, "r"),
        ])
    page.rule()
    page.gap(6 * mm)

    totals = [("Subtotal", order.total_amount)]
    if order.discount_amount:
        totals.append(("Discount", -order.discount_amount))
    totals.append(("Net total", order.net_total))
    for label, value in totals:
        page.row([(label, col_price, "r"), (_money(value), col_total, "r")], bold=label == "Net total")

    if order.payments:
        page.gap(4 * mm)
        page.row([("Payments received", MARGIN, "l")], bold=True)
        for p in sorted(order.payments, key=lambda p: (p.payment_date, p.created_at)):
            ref = f" ({p.transaction_reference})" if p.transaction_reference else ""
            page.row([
                (f"{p.payment_date.isoformat()}  {p.payment_mode}{ref}", MARGIN, "l"),
                (_money(p.amount_received), col_total, "r"),
            ])
    page.gap(2 * mm)
    page.row(
        [("Outstanding", col_price, "r"), (_money(order.outstanding_amount), col_total, "r")],
        bold=True,
        color=ALERT if order.outstanding_amount > 0 else INK,
    )

    if invoice.notes:
        page.gap(6 * mm)
        page.need(12 * mm)
        page.text("Notes", size=9.5, bold=True)
        page.gap(4.5 * mm)
        for line in invoice.notes.splitlines():
            page.need(5 * mm)
            page.text(line, size=9, color=MUTED)
            page.gap(4.2 * mm)

    c.showPage()
    c.save()
    return buf.getvalue()


def render_inventory_report(summary: dict) -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle("Inventory report")
    page = _Page(c, "Inventory report (continued)")
    right_edge = PAGE_W - MARGIN

    page.text(f"{settings.APP_NAME} inventory report", size=16, bold=True, color=ACCENT)
    page.gap(6 * mm)
    page.text(f"Generated {datetime.now().strftime('%Y-%m-%d %H:%M')}", size=9, color=MUTED)
    page.gap(10 * mm)

    cols = [50 * mm, 75 * mm, 100 * mm, 125 * mm, 150 * mm, right_edge]
    headers = ["Received", "Consumed", "Wasted", "Transfer out", "Transfer in", "Available"]
    keys = ["received", "consumed", "wasted", "transferred_out", "transferred_in", "available"]
    for group in summary["lot_types"]:
        page.need(20 * mm)
        page.text(f"{group['label']} ({group['lot_count']} lots)", size=12, bold=True)
        page.gap(6 * mm)
        page.row([("Unit", MARGIN, "l")] + [(h, x, "r") for h, x in zip(headers, cols)], bold=True, size=8.5)
        for unit, totals in group["by_unit"].items():
            page.row([(unit, MARGIN, "l")] + [(f"{totals[k]:,.2f}", x, "r") for k, x in zip(keys, cols)])
        page.gap(4 * mm)

    page.need(20 * mm)
    page.text(f"Low stock (at or below {summary['low_stock_threshold']:g})", size=12, bold=True)
    page.gap(6 * mm)
    if not summary["low_stock"]:
        page.row([("None", MARGIN, "l")], color=MUTED)
    for lot in summary["low_stock"]:
        page.row([
            (lot["lot_id"], MARGIN, "l"),
            (lot["name"][:40], 45 * mm, "l"),
            (f"{lot['quantity_available']:g} {lot['unit']}", right_edge, "r"),
        ], color=ALERT)
    page.gap(4 * mm)

    goods = summary["processed_goods"]
    page.need(20 * mm)
    page.text(f"Processed goods ({goods['count']} batches of output)", size=12, bold=True)
    page.gap(6 * mm)
    page.row([("Product", MARGIN, "l"), ("Created", 125 * mm, "r"), ("Available", right_edge, "r")], bold=True, size=8.5)
    for product in goods["by_product"]:
        page.row([
            (f"{product['product_type']} ({product['unit']})"[:60], MARGIN, "l"),
            (f"{product['quantity_created']:,.2f}", 125 * mm, "r"),
            (f"{product['quantity_available']:,.2f}", right_edge, "r"),
        ])

    c.showPage()
    c.save()
    return buf.getvalue()
