"""
CSV export of reviewed tickets.

Nothing is persisted; the caller sends the tickets it holds and receives
the CSV text back.
"""

from datetime import date
from ..models.ticket import FIELD_LABELS, TICKET_FIELDS, ExtractedTicket


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _cell(value: str) -> str:
    # Plain columns are only quoted when they would break the row
    if any(ch in value for ch in ',"\n\r'):
        return _quote(value)
    return value


def _value(ticket: ExtractedTicket, field: str) -> str:
    extracted = ticket.fields.get(field)
    return extracted.value if extracted is not None else ""


def tickets_to_csv(tickets: list[ExtractedTicket], approved_only: bool = False) -> str:
    labels = [FIELD_LABELS[field] for field in TICKET_FIELDS]

    if approved_only:
        header = ["Image", *labels]
        rows = [
            [_cell(t.image_url), *(_quote(_value(t, f)) for f in TICKET_FIELDS)]
            for t in tickets
            if t.status == "approved"
        ]
    else:
        header = ["Status", "Image", "Overall Confidence", *labels]
        rows = [
            [
                t.status,
                _cell(t.image_url),
                str(t.overall_confidence),
                *(_quote(_value(t, f)) for f in TICKET_FIELDS),
            ]
            for t in tickets
        ]

    return "\n".join(",".join(row) for row in [header, *rows])


def export_filename(approved_only: bool = False, day: date | None = None) -> str:
    kind = "approved" if approved_only else "export"
    return f"tickets_{kind}_{(day or date.today()).isoformat()}.csv"
