"""
CSV formatting for the families, institutions and deliveries reports.
"""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from typing import Any, Mapping, Sequence

from cestas.constants import FamilyStatus, ReportKind
from cestas.db import DeliveryRecord, FamilyRecord, InstitutionRecord

REPORT_FILE_PREFIXES = {
    ReportKind.FAMILIES: "familias",
    ReportKind.INSTITUTIONS: "instituicoes",
    ReportKind.DELIVERIES: "entregas",
}


def to_csv(rows: Sequence[Mapping[str, Any]]) -> str:
    """
    Serialize homogeneous flat records to CSV text.

    The header comes from the first row. Fields containing commas, quotes or
    newlines are quoted with embedded quotes doubled; None becomes empty.
    """
    if not rows:
        return ""
    headers = list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if row.get(h) is None else row.get(h) for h in headers])
    return buffer.getvalue().rstrip("\n")


def _format_day(value: date | None) -> str:
    return value.strftime("%d/%m/%Y") if value else "N/A"


def _format_timestamp(value: float) -> str:
    return datetime.fromtimestamp(value).strftime("%d/%m/%Y")


def format_families(families: Sequence[FamilyRecord]) -> list[dict]:
    return [
        {
            "ID": f.family_id,
            "Nome": f.name,
            "Endereço": f.address,
            "Telefone": f.phone,
            "Membros": f.members,
            "Renda": f"R$ {f.income:.2f}",
            "Status": "Ativa" if f.status == FamilyStatus.ACTIVE else "Bloqueada",
            "Bloqueada até": _format_day(f.blocked_until),
            "Criado em": _format_timestamp(f.created_at),
        }
        for f in families
    ]


def format_institutions(institutions: Sequence[InstitutionRecord]) -> list[dict]:
    return [
        {
            "ID": i.institution_id,
            "Nome": i.name,
            "Endereço": i.address,
            "Telefone": i.phone,
            "Cestas Disponíveis": i.baskets,
            "Criado em": _format_timestamp(i.created_at),
        }
        for i in institutions
    ]


def format_deliveries(deliveries: Sequence[DeliveryRecord]) -> list[dict]:
    return [
        {
            "ID": d.delivery_id,
            "Família": d.family_name,
            "Instituição": d.institution_name,
            "Data da Entrega": _format_day(d.delivery_date),
            "Cestas Entregues": d.baskets,
            "Outros Itens": "; ".join(d.other_items),
            "Criado em": _format_timestamp(d.created_at),
        }
        for d in deliveries
    ]


def report_filename(kind: ReportKind, today: date) -> str:
    return f"{REPORT_FILE_PREFIXES[kind]}_{today.isoformat()}.csv"
