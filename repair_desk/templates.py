from __future__ import annotations

from html import escape
from typing import Any, Mapping

from repair_desk.quote import DISCLAIMER_ESTIMATE


def _text(record: Mapping[str, Any], key: str) -> str:
    value = record.get(key)
    return "" if value is None else str(value).strip()


def _joined(record: Mapping[str, Any], *keys: str) -> str:
    return " ".join(p for p in (_text(record, k) for k in keys) if p)


def _detail_rows(record: Mapping[str, Any]) -> str:
    rows = [
        ("Toestel", _joined(record, "brand", "model", "color")),
        ("Reparatie", _text(record, "issue")),
        ("Richtprijs", _text(record, "price_text")),
        ("Voorkeur", _joined(record, "preferred_date", "preferred_time")),
    ]
    return "\n".join(
        f'<div style="margin:0 0 6px 0;"><strong>{label}:</strong> {escape(value) or "-"}</div>'
        for label, value in rows
    )


def _layout(title: str, intro: str, record: Mapping[str, Any], footer_note: str, shop_name: str) -> str:
    return f"""
<div style="font-family:Arial,sans-serif;max-width:620px;margin:0 auto;line-height:1.5;color:#111">
  <div style="padding:18px;border:1px solid #e6ecf5;border-radius:14px;background:#ffffff">
    <h2 style="margin:0 0 10px 0;">{escape(title)}</h2>
    <p style="margin:0 0 14px 0;color:#444">{intro}</p>
    <div style="padding:12px 14px;border-radius:12px;background:#f6f8fc;border:1px solid #e6ecf5">
{_detail_rows(record)}
    </div>
    <p style="margin:14px 0 0 0;color:#444">{footer_note}</p>
    <p style="margin:14px 0 0 0;color:#444">Met vriendelijke groet,<br><strong>{escape(shop_name)}</strong></p>
  </div>
  <p style="font-size:12px;color:#6b7280;margin:10px 0 0 0;">Referentie: {escape(_text(record, "id"))}</p>
</div>
"""


def _greeting(record: Mapping[str, Any]) -> str:
    name = _text(record, "customer_name")
    return f" {escape(name)}" if name else ""


def intake_confirmation(record: Mapping[str, Any], shop_name: str = "GSM Team") -> tuple[str, str]:
    subject = f"Bevestiging reparatie-aanvraag - {shop_name}"
    intro = f"Bedankt{_greeting(record)}! We hebben je aanvraag ontvangen."
    html = _layout("Bevestiging reparatie-aanvraag", intro, record, escape(DISCLAIMER_ESTIMATE), shop_name)
    return subject, html


def approval_notice(
    record: Mapping[str, Any],
    shop_name: str = "GSM Team",
    with_quote: bool = False,
) -> tuple[str, str]:
    subject = f"Je reparatie-aanvraag is goedgekeurd - {shop_name}"
    intro = f"Goed nieuws{_greeting(record)}! Je reparatie-aanvraag is goedgekeurd."
    note = "We verwachten je op het gekozen moment. Neem contact op als dat niet meer uitkomt."
    if with_quote:
        note += " In de bijlage vind je de offerte met de prijsopbouw."
    html = _layout("Reparatie-aanvraag goedgekeurd", intro, record, escape(note), shop_name)
    return subject, html


def rejection_notice(
    record: Mapping[str, Any],
    reason: str | None = None,
    shop_name: str = "GSM Team",
) -> tuple[str, str]:
    subject = f"Je reparatie-aanvraag - {shop_name}"
    intro = f"Beste{_greeting(record)}, helaas kunnen we je reparatie-aanvraag niet inplannen."
    if reason:
        note = f"Reden: {escape(reason)}"
    else:
        note = "Neem gerust contact met ons op voor meer informatie of een alternatief."
    html = _layout("Reparatie-aanvraag afgewezen", intro, record, note, shop_name)
    return subject, html
