from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app

CSV_HEADER = "ParentCategory,Date,FlowDirection,PaymentMethod,Amount,Location,Memo\n"


def make_client() -> TestClient:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def _upload(client: TestClient, content: str):
    return client.post(
        "/upload", files={"file": ("export.csv", content.encode("utf-8"), "text/csv")}
    )


def test_upload_then_summary_and_periods() -> None:
    client = make_client()
    resp = _upload(
        client,
        CSV_HEADER
        + "Food/Alice,2024-03-01,Expense,Card,3000,,\n"
        + "Food/Bob,2024-03-05,Expense,Cash,1000,,\n"
        + "Food,2024-03-06,Expense,Cash,10,,\n",
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["processed_count"] == 2
    assert body["touched_periods"] == ["2024-03"]
    assert len(body["errors"]) == 1

    summary = client.get("/summary", params={"period": "2024-03"}).json()
    assert summary["grand_total"] == 4000
    assert summary["persons"] == ["Alice", "Bob"]
    assert summary["categories"] == ["Food"]
    assert summary["start"] == "2024-03-01"
    assert summary["end"] == "2024-03-31"
    assert summary["settlement"]["fair_share"] == 2000
    assert summary["settlement"]["transfers"] == [
        {"from": "Bob", "to": "Alice", "amount": 1000}
    ]

    periods = client.get("/periods").json()
    assert periods["items"] == [{"period": "2024-03", "record_count": 2}]


def test_upload_without_valid_rows_is_rejected() -> None:
    client = make_client()
    resp = _upload(client, CSV_HEADER + "Food,2024-03-06,Expense,Cash,10,,\n")
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "No valid records found"
    assert len(body["errors"]) == 1


def test_empty_upload_is_rejected() -> None:
    client = make_client()
    resp = _upload(client, "")
    assert resp.status_code == 400


def test_summary_rejects_malformed_period() -> None:
    client = make_client()
    assert client.get("/summary", params={"period": "2024-3"}).status_code == 400
    assert client.get("/summary", params={"period": "2024-13"}).status_code == 400


def test_upload_keeps_rows_with_long_memo() -> None:
    client = make_client()
    resp = _upload(
        client,
        CSV_HEADER
        + "Food/Alice,2024-04-01,Expense,Card,3000,,\n"
        + f"Food/Bob,2024-04-02,Expense,Card,1000,,{'m' * 200_000}\n"
        + "Food/Carol,2024-04-03,Expense,Card,2000,,\n",
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["processed_count"] == 3
    assert body["errors"] == []

    summary = client.get("/summary", params={"period": "2024-04"}).json()
    assert summary["grand_total"] == 6000
    assert len(summary["details"][1]["records"][0]["memo"]) == 200_000
