import csv
from datetime import date, datetime
from io import StringIO
from typing import Iterable, Iterator, Mapping, Optional

from config import get_settings
from models import FlowDirection
from periods import period_key
from schemas import LedgerRecordIn

# Each logical field may arrive under its English header or the header used by
# the household account book export.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "parent_category": ("ParentCategory", "親カテゴリ"),
    "date": ("Date", "日付"),
    "flow": ("FlowDirection", "収入/支出"),
    "payment_method": ("PaymentMethod", "入金/支払方法"),
    "amount": ("Amount", "金額"),
    "location": ("Location", "場所"),
    "memo": ("Memo", "メモ"),
}

FLOW_ALIASES: dict[str, FlowDirection] = {
    "income": FlowDirection.income,
    "収入": FlowDirection.income,
    "expense": FlowDirection.expense,
    "支出": FlowDirection.expense,
}

DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d.%m.%Y")

_AMOUNT_NOISE = ("¥", "￥", "$", "€", ",", " ")


class RowValidationError(ValueError):
    def __init__(self, reason: str, value: Optional[str] = None) -> None:
        self.reason = reason
        self.value = value
        message = reason if value is None else f"{reason}: '{value}'"
        super().__init__(message)


def field_value(raw: Mapping[str, Optional[str]], field: str) -> str:
    for header in FIELD_ALIASES[field]:
        value = raw.get(header)
        if value is not None:
            return str(value)
    return ""


def split_composite(value: str) -> tuple[str, str]:
    """Split ``"<category>/<person>"``; segments past the second are ignored."""
    parts = value.split("/")
    category = parts[0].strip()
    person = parts[1].strip() if len(parts) > 1 else ""
    if not category or not person:
        raise RowValidationError("invalid composite field", value)
    return category, person


def parse_date(value: str) -> date:
    date_part = value.strip().split(" ")[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(date_part, fmt).date()
        except ValueError:
            continue
    raise RowValidationError("invalid date", value)


def parse_amount(value: str) -> int:
    clean = value.strip()
    for token in _AMOUNT_NOISE:
        clean = clean.replace(token, "")
    if not clean:
        return 0
    try:
        amount = int(clean)
    except ValueError as exc:
        raise RowValidationError("invalid amount", value) from exc
    if amount < 0:
        raise RowValidationError("invalid amount", value)
    return amount


def normalize_flow(value: str) -> str:
    clean = value.strip()
    flow = FLOW_ALIASES.get(clean.lower())
    return flow.value if flow else clean


def parse_row(raw: Mapping[str, Optional[str]]) -> LedgerRecordIn:
    category, person = split_composite(field_value(raw, "parent_category"))
    record_date = parse_date(field_value(raw, "date"))
    return LedgerRecordIn(
        record_date=record_date,
        income_expense=normalize_flow(field_value(raw, "flow")),
        payment_method=field_value(raw, "payment_method").strip(),
        category=category,
        person=person,
        amount=parse_amount(field_value(raw, "amount")),
        location=field_value(raw, "location").strip(),
        memo=field_value(raw, "memo").strip(),
        period=period_key(record_date),
    )


def parse_rows(
    rows: Iterable[Mapping[str, Optional[str]]],
) -> tuple[list[LedgerRecordIn], list[str]]:
    records: list[LedgerRecordIn] = []
    errors: list[str] = []
    iterator = iter(rows)
    idx = 0
    while True:
        idx += 1
        try:
            raw = next(iterator)
        except StopIteration:
            break
        except csv.Error as exc:
            # The reader drops the offending line and resumes on the next one.
            errors.append(f"Row {idx}: {exc}")
            continue
        try:
            records.append(parse_row(raw))
        except ValueError as exc:
            errors.append(f"Row {idx}: {exc}")
    return records, errors


def read_csv_rows(
    content: str, *, field_size_limit: Optional[int] = None
) -> Iterator[dict[str, Optional[str]]]:
    """Return a reader over ``content`` whose fields may be as large as an upload."""
    csv.field_size_limit(field_size_limit or get_settings().max_upload_bytes)
    return csv.DictReader(StringIO(content.lstrip("\ufeff")))


def parse_csv(
    content: str, *, field_size_limit: Optional[int] = None
) -> tuple[list[LedgerRecordIn], list[str]]:
    return parse_rows(read_csv_rows(content, field_size_limit=field_size_limit))
