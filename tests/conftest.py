"""
Shared fixtures for Bookkeeper tests.

No real external services are used:
- SQL runs against a throwaway SQLite file
- Google Sheets runs against an in-process fake of the gspread API
"""

from datetime import datetime
from decimal import Decimal

import gspread
import pytest
import pytest_asyncio

from bookkeeper.config import AppSettings, GoogleSheetsSettings
from bookkeeper.orchestrator import BookkeepingService
from bookkeeper.services.storage import InMemoryLedgerStorage, SqlLedgerStorage
from bookkeeper.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)
from bookkeeper.validation import RecordValidator


# =============================================================================
# FAKE GSPREAD
# =============================================================================

class FakeWorksheet:
    """Just enough of gspread.Worksheet for the Sheets backend."""

    def __init__(self, title: str):
        self.title = title
        self.rows: list[list[str]] = []

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(value) for value in values])

    def update(self, range_name=None, values=None, value_input_option=None):
        # Only single-row writes anchored in column A are used
        row_number = int(range_name.lstrip("A"))
        self.rows[row_number - 1] = [str(value) for value in values[0]]


class FakeSpreadsheet:
    """Just enough of gspread.Spreadsheet for the Sheets backend."""

    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}
        self.fail_reads = False

    def worksheet(self, title: str) -> FakeWorksheet:
        try:
            return self.sheets[title]
        except KeyError:
            raise gspread.WorksheetNotFound(title)

    def add_worksheet(self, title: str, rows: int, cols: int) -> FakeWorksheet:
        sheet = FakeWorksheet(title)
        self.sheets[title] = sheet
        return sheet

    def values_batch_get(self, ranges):
        if self.fail_reads:
            raise RuntimeError("quota exceeded")
        value_ranges = []
        for range_name in ranges:
            title = range_name
            if title.startswith("'") and title.endswith("'"):
                title = title[1:-1].replace("''", "'")
            sheet = self.sheets[title]
            value_ranges.append({"range": range_name, "values": sheet.get_all_values()})
        return {"valueRanges": value_ranges}


class FakeSheetsClient(GoogleSheetsClient):
    """GoogleSheetsClient wired to a FakeSpreadsheet, no credentials needed."""

    def __init__(self, spreadsheet: FakeSpreadsheet):
        self._client = None
        self._spreadsheet = spreadsheet
        self._settings = None


@pytest.fixture
def sheets_settings(tmp_path):
    credentials = tmp_path / "credentials.json"
    credentials.write_text("{}")
    return GoogleSheetsSettings(
        credentials_path=str(credentials),
        spreadsheet_id="test-spreadsheet",
    )


@pytest.fixture
def fake_spreadsheet():
    return FakeSpreadsheet()


# =============================================================================
# STORAGE BACKENDS
# =============================================================================

@pytest.fixture
def memory_storage():
    return InMemoryLedgerStorage()


@pytest_asyncio.fixture
async def sql_storage(tmp_path):
    storage = SqlLedgerStorage(database_url=f"sqlite+aiosqlite:///{tmp_path / 'books.db'}")
    yield storage
    await storage.close()


@pytest.fixture
def sheets_storage(fake_spreadsheet, sheets_settings):
    return GoogleSheetsLedgerStorage(
        client=FakeSheetsClient(fake_spreadsheet),
        settings=sheets_settings,
    )


@pytest_asyncio.fixture(params=["memory", "sql", "google_sheets"])
async def ledger(request, tmp_path, fake_spreadsheet, sheets_settings):
    """Every storage backend, for contract tests."""
    if request.param == "memory":
        yield InMemoryLedgerStorage()
    elif request.param == "sql":
        storage = SqlLedgerStorage(database_url=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
        yield storage
        await storage.close()
    else:
        yield GoogleSheetsLedgerStorage(
            client=FakeSheetsClient(fake_spreadsheet),
            settings=sheets_settings,
        )


# =============================================================================
# SERVICE
# =============================================================================

@pytest.fixture
def app_settings():
    return AppSettings(large_amount_warning=Decimal("1000000"), log_json=True)


@pytest.fixture
def validator(app_settings):
    return RecordValidator(app_settings)


@pytest.fixture
def service(memory_storage, validator):
    return BookkeepingService(memory_storage, validator)


# =============================================================================
# PAYLOADS
# =============================================================================

@pytest.fixture
def invoice_payload():
    return {
        "client_name": "Acme Corp",
        "description": "Website redesign",
        "amount": "1500.50",
        "issue_date": datetime(2024, 1, 1),
        "due_date": datetime(2024, 1, 31),
    }


@pytest.fixture
def expense_payload():
    return {
        "description": "Design software licence",
        "amount": "49.99",
        "date": datetime(2024, 1, 5),
        "category": "Software",
    }
