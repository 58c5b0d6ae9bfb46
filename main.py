import logging
from dataclasses import asdict

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config import get_settings
from database import create_schema, get_db
from periods import resolve_period
from schemas import IngestResultOut
from services import LedgerService, NoValidRecords, PersistenceError

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Household Ledger")


@app.on_event("startup")
def startup_event():
    create_schema()


@app.exception_handler(NoValidRecords)
def no_valid_records_handler(request: Request, exc: NoValidRecords):
    return JSONResponse(
        status_code=400, content={"message": str(exc), "errors": exc.errors}
    )


@app.exception_handler(PersistenceError)
def persistence_error_handler(request: Request, exc: PersistenceError):
    return JSONResponse(
        status_code=500, content={"message": str(exc), "errors": exc.errors}
    )


@app.post("/upload", response_model=IngestResultOut)
async def upload_ledger(file: UploadFile = File(...), db: Session = Depends(get_db)):
    raw = await file.read()
    if not raw:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(raw) > settings.max_upload_bytes:
        raise HTTPException(status_code=400, detail="File too large")
    try:
        content = raw.decode(settings.csv_encoding)
    except UnicodeDecodeError as exc:
        raise HTTPException(
            status_code=400, detail=f"File is not valid {settings.csv_encoding}"
        ) from exc
    logger.info(f"upload_received: filename={file.filename} bytes={len(raw)}")
    result = LedgerService(db).ingest_csv(content)
    return IngestResultOut(**asdict(result))


@app.get("/summary")
def period_summary(period: str, db: Session = Depends(get_db)):
    try:
        resolved = resolve_period(period)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    summary, settlement = LedgerService(db).settle_period(resolved.key)
    return {
        "period": summary.period,
        "start": resolved.start.isoformat(),
        "end": resolved.end.isoformat(),
        "grand_total": summary.grand_total,
        "person_count": summary.person_count,
        "persons": summary.persons,
        "categories": summary.categories,
        "person_totals": [asdict(item) for item in summary.person_totals],
        "category_totals": [asdict(item) for item in summary.category_totals],
        "category_person_matrix": [
            asdict(item) for item in summary.category_person_matrix
        ],
        "details": [
            {
                "category": detail.category,
                "person": detail.person,
                "records": [
                    {
                        "record_date": record.record_date.isoformat(),
                        "payment_method": record.payment_method,
                        "amount": record.amount,
                        "location": record.location,
                        "memo": record.memo,
                    }
                    for record in detail.records
                ],
            }
            for detail in summary.details
        ],
        "settlement": {
            "fair_share": settlement.fair_share,
            "balances": [asdict(item) for item in settlement.balances],
            "transfers": [
                {
                    "from": transfer.from_person,
                    "to": transfer.to_person,
                    "amount": transfer.amount,
                }
                for transfer in settlement.transfers
            ],
        },
    }


@app.get("/periods")
def list_periods(db: Session = Depends(get_db)):
    return {
        "items": [asdict(item) for item in LedgerService(db).available_periods()]
    }


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
