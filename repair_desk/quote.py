from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

from reportlab.lib.pagesizes import A4
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

VAT_RATE = Decimal("1.21")
CENT = Decimal("0.01")

_AMOUNT_RE = re.compile(r"[-+]?\d+(?:[.,]\d{1,2})?")

PAGE_MARGIN = 56
FOOTER_SPACE = 24
ELLIPSIS = "..."
FIXED_SECTIONS = ("header", "disclaimer")

DISCLAIMER_UNKNOWN = (
    "De prijs kon niet automatisch worden bepaald. "
    "We bevestigen de definitieve prijs na controle van het toestel."
)
DISCLAIMER_ESTIMATE = (
    "Dit is een richtprijs. Na controle van het toestel laten we je weten als de prijs afwijkt."
)


@dataclass(frozen=True)
class PriceBreakdown:
    incl: Decimal
    excl: Decimal
    vat: Decimal


@dataclass(frozen=True)
class QuoteData:
    request_id: str
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    brand: str = ""
    model: str = ""
    color: str = ""
    issue: str = ""
    price_text: str = ""
    preferred_date: str = ""
    preferred_time: str = ""

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "QuoteData":
        def text(key: str) -> str:
            value = record.get(key)
            return "" if value is None else str(value).strip()

        return cls(
            request_id=text("id"),
            customer_name=text("customer_name"),
            customer_email=text("customer_email"),
            customer_phone=text("customer_phone"),
            brand=text("brand"),
            model=text("model"),
            color=text("color"),
            issue=text("issue"),
            price_text=text("price_text"),
            preferred_date=text("preferred_date"),
            preferred_time=text("preferred_time"),
        )

    @property
    def device(self) -> str:
        return " ".join(p for p in (self.brand, self.model, self.color) if p)

    @property
    def preferred_slot(self) -> str:
        return " ".join(p for p in (self.preferred_date, self.preferred_time) if p)


@dataclass(frozen=True)
class QuoteLine:
    section: str
    text: str
    bold: bool = False


def extract_amount(price_text: str | None) -> Decimal | None:
    """First number in a free-text price, e.g. ``"€ 79,95"`` -> ``Decimal("79.95")``."""
    if not price_text:
        return None
    match = _AMOUNT_RE.search(price_text)
    if not match:
        return None
    return Decimal(match.group(0).replace(",", "."))


def vat_breakdown(incl: Decimal) -> PriceBreakdown:
    """Split a VAT-inclusive amount at 21%.

    ``excl`` and ``vat`` are rounded independently, so ``excl + vat`` can be one
    cent off ``incl``.
    """
    raw_excl = incl / VAT_RATE
    return PriceBreakdown(
        incl=incl.quantize(CENT, rounding=ROUND_HALF_UP),
        excl=raw_excl.quantize(CENT, rounding=ROUND_HALF_UP),
        vat=(incl - raw_excl).quantize(CENT, rounding=ROUND_HALF_UP),
    )


def format_euro(amount: Decimal) -> str:
    sign = "-" if amount < 0 else ""
    whole, _, cents = f"{abs(amount):.2f}".partition(".")
    grouped = f"{int(whole):,}".replace(",", ".")
    return f"{sign}€ {grouped},{cents}"


def quote_filename(quote: QuoteData) -> str:
    ref = re.sub(r"[^A-Za-z0-9-]", "", quote.request_id)[:8] or "aanvraag"
    return f"offerte-{ref}.pdf"


def quote_lines(quote: QuoteData, shop_name: str = "GSM Team") -> list[QuoteLine]:
    lines = [
        QuoteLine("header", f"{shop_name} - Offerte reparatie", bold=True),
        QuoteLine("customer", "Klant", bold=True),
        QuoteLine("customer", f"Naam: {quote.customer_name or '-'}"),
        QuoteLine("customer", f"E-mail: {quote.customer_email or '-'}"),
    ]
    if quote.customer_phone:
        lines.append(QuoteLine("customer", f"Telefoon: {quote.customer_phone}"))
    lines += [
        QuoteLine("request", "Aanvraag", bold=True),
        QuoteLine("request", f"Toestel: {quote.device or '-'}"),
        QuoteLine("request", f"Reparatie: {quote.issue or '-'}"),
        QuoteLine("request", f"Referentie: {quote.request_id or '-'}"),
        QuoteLine("request", f"Voorkeur: {quote.preferred_slot or '-'}"),
        QuoteLine("price", "Prijs", bold=True),
    ]

    amount = extract_amount(quote.price_text)
    if amount is None:
        lines.append(QuoteLine("price", f"Prijs: {quote.price_text or 'Op aanvraag'}"))
        lines.append(QuoteLine("disclaimer", DISCLAIMER_UNKNOWN))
    else:
        prices = vat_breakdown(amount)
        lines += [
            QuoteLine("price", f"Subtotaal excl. btw: {format_euro(prices.excl)}"),
            QuoteLine("price", f"Btw 21%: {format_euro(prices.vat)}"),
            QuoteLine("price", f"Totaal incl. btw: {format_euro(prices.incl)}", bold=True),
        ]
        lines.append(QuoteLine("disclaimer", DISCLAIMER_ESTIMATE))

    lines.append(QuoteLine("footer", f"Met vriendelijke groet, {shop_name}"))
    return lines


@dataclass(frozen=True)
class _Block:
    line: QuoteLine
    font: str
    size: int
    gap: int
    rows: list[str]

    @property
    def step(self) -> int:
        return self.size + 5

    @property
    def rule(self) -> int:
        return 6 if self.line.section == "header" else 0

    @property
    def min_height(self) -> int:
        # Free text from the request may shrink to one row; fixed wording may not.
        rows = len(self.rows) if self.line.section in FIXED_SECTIONS else 1
        return self.gap + rows * self.step + self.rule


def _style(line: QuoteLine) -> tuple[str, int]:
    if line.section == "header":
        return "Helvetica-Bold", 18
    if line.section in ("disclaimer", "footer"):
        return "Helvetica-Oblique", 9
    return ("Helvetica-Bold" if line.bold else "Helvetica"), 11


def _wrap(text: str, font: str, size: int, width: float) -> list[str]:
    words = text.split()
    if not words:
        return [""]
    rows: list[str] = []
    current = words[0]
    for word in words[1:]:
        candidate = f"{current} {word}"
        if stringWidth(candidate, font, size) <= width:
            current = candidate
        else:
            rows.append(current)
            current = word
    rows.append(current)
    return rows


def _shorten(rows: list[str], font: str, size: int, width: float) -> list[str]:
    last = rows[-1]
    while last and stringWidth(last + ELLIPSIS, font, size) > width:
        last = last[:-1]
    return rows[:-1] + [last.rstrip() + ELLIPSIS]


def _layout(lines: list[QuoteLine], width: float) -> list[_Block]:
    blocks: list[_Block] = []
    previous_section = None
    for line in lines:
        font, size = _style(line)
        gap = 10 if previous_section is not None and line.section != previous_section else 0
        blocks.append(_Block(line, font, size, gap, _wrap(line.text, font, size, width)))
        previous_section = line.section
    return blocks


def render_quote_pdf(quote: QuoteData, shop_name: str = "GSM Team") -> bytes:
    """One A4 page. Long request text is cut short so the price block and the
    disclaimer always stay above the footer."""
    buffer = io.BytesIO()
    page_width, page_height = A4
    text_width = page_width - 2 * PAGE_MARGIN
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.setTitle(f"Offerte {quote.request_id}")
    pdf.setAuthor(shop_name)

    lines = quote_lines(quote, shop_name)
    footer = [line for line in lines if line.section == "footer"]
    blocks = _layout([line for line in lines if line.section != "footer"], text_width)

    floor = PAGE_MARGIN + FOOTER_SPACE
    y = page_height - PAGE_MARGIN
    for index, block in enumerate(blocks):
        y -= block.gap
        reserve = sum(later.min_height for later in blocks[index + 1 :])
        fit = max(1, int((y - floor - reserve - block.rule) // block.step))
        rows = block.rows
        if len(rows) > fit:
            logger.info("Quote %s: %s text cut to %d rows", quote.request_id, block.line.section, fit)
            rows = _shorten(rows[:fit], block.font, block.size, text_width)
        pdf.setFont(block.font, block.size)
        for row in rows:
            pdf.drawString(PAGE_MARGIN, y, row)
            y -= block.step
        if block.rule:
            pdf.line(PAGE_MARGIN, y + 4, page_width - PAGE_MARGIN, y + 4)
            y -= block.rule

    for line in footer:
        font, size = _style(line)
        pdf.setFont(font, size)
        pdf.drawString(PAGE_MARGIN, PAGE_MARGIN, line.text)

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()
