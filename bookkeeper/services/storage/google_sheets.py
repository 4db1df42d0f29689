"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a backend because:
1. The owner can view and export their books directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for a small business)
- No transactions. Ids are max(id) + 1, so two processes writing
  at the same moment can collide. Run a single writer.
- snapshot() fetches both sheets with one batch request. That is as
  close to a consistent read as the Sheets API offers, but it is not
  a transaction.

The implementation follows the abstract interface, so business logic
does not know which backend it is talking to.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from bookkeeper.config import GoogleSheetsSettings, get_settings
from bookkeeper.log import get_logger
from bookkeeper.models.records import EXPENSE, INVOICE, RecordKind
from bookkeeper.patching import merge_patch
from bookkeeper.services.storage.interface import (
    ConnectionError,
    LedgerSnapshot,
    LedgerStorageInterface,
    NotFoundError,
    RecordStorageInterface,
    StorageError,
)

logger = get_logger(__name__)


# Column mappings for the Invoices sheet
INVOICE_COLUMNS = [
    "id",
    "client_name",
    "description",
    "amount",
    "issue_date",
    "due_date",
    "status",
    "created_at",
]

# Column mappings for the Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "description",
    "amount",
    "date",
    "category",
    "created_at",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    Record writes are never retried: an append that timed out may
    still have landed.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(FileNotFoundError),
        reraise=True,
    )
    def _authorize(self) -> gspread.Client:
        scopes = [
            "https://www.googleapis.com/auth/spreadsheets",
            "https://www.googleapis.com/auth/drive",
        ]
        credentials = Credentials.from_service_account_file(
            self._settings.credentials_path,
            scopes=scopes,
        )
        return gspread.authorize(credentials)

    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                self._client = self._authorize()
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


def _to_cell(value: Any) -> str:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class GoogleSheetsRecordStorage(RecordStorageInterface):
    """
    One entity kind stored as rows in one worksheet.

    Row 1 is the header; one record per row after that.
    """

    def __init__(
        self,
        kind: RecordKind,
        client: GoogleSheetsClient,
        sheet_name: str,
        columns: list[str],
    ):
        self.kind = kind
        self.sheet_name = sheet_name
        self.columns = columns
        self._client = client

    @property
    def a1_range(self) -> str:
        """The whole sheet as an A1 range; quotes inside the title are doubled."""
        escaped = self.sheet_name.replace("'", "''")
        return f"'{escaped}'"

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self.sheet_name, self.columns)

    def _record_to_row(self, record: BaseModel) -> list[str]:
        """Convert a record to a spreadsheet row."""
        return [_to_cell(getattr(record, column)) for column in self.columns]

    def _row_to_record(self, row: list) -> BaseModel:
        """Convert a spreadsheet row to a record."""
        padded = list(row) + [""] * (len(self.columns) - len(row))
        data = dict(zip(self.columns, padded))
        try:
            return self.kind.model.model_validate(data)
        except PydanticValidationError as e:
            raise StorageError(
                f"Malformed {self.kind.name} row in sheet '{self.sheet_name}' "
                f"(id={data.get('id')!r}): {e}"
            ) from e

    def _records_from_values(self, values: list[list]) -> list:
        # values[0] is the header; blank rows are skipped
        records = [
            self._row_to_record(row)
            for row in values[1:]
            if row and row[0]
        ]
        records.sort(key=lambda record: record.id)
        return records

    def _find_row(self, values: list[list], record_id: int) -> Optional[int]:
        """Return the 1-based sheet row number holding record_id."""
        for idx, row in enumerate(values[1:], start=2):  # Row 1 is the header
            if row and row[0] == str(record_id):
                return idx
        return None

    async def insert(self, draft):
        try:
            sheet = self._sheet()
            values = sheet.get_all_values()
            existing_ids = [int(row[0]) for row in values[1:] if row and row[0]]
            next_id = max(existing_ids, default=0) + 1

            record = self.kind.model(
                id=next_id,
                created_at=datetime.now(timezone.utc),
                **draft.model_dump(),
            )
            sheet.append_row(self._record_to_row(record), value_input_option="RAW")
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save {self.kind.name}: {e}") from e

    async def list_all(self):
        try:
            values = self._sheet().get_all_values()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list {self.kind.name}s: {e}") from e
        return self._records_from_values(values)

    async def get(self, record_id: int):
        try:
            values = self._sheet().get_all_values()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get {self.kind.name}: {e}") from e

        idx = self._find_row(values, record_id)
        if idx is None:
            raise NotFoundError(f"{self.kind.label} not found: {record_id}")
        return self._row_to_record(values[idx - 1])

    async def update(self, record_id: int, patch: BaseModel):
        try:
            sheet = self._sheet()
            values = sheet.get_all_values()

            idx = self._find_row(values, record_id)
            if idx is None:
                raise NotFoundError(f"{self.kind.label} not found: {record_id}")

            updated = merge_patch(self._row_to_record(values[idx - 1]), patch)

            # One range write so a reader never sees half a row
            sheet.update(
                range_name=f"A{idx}",
                values=[self._record_to_row(updated)],
                value_input_option="RAW",
            )
            return updated
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {self.kind.name}: {e}") from e


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Invoices and expenses as two worksheets of one spreadsheet.

    snapshot() is a single batch read, not a transaction.
    """

    backend_name = "google_sheets"

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        settings: Optional[GoogleSheetsSettings] = None,
    ):
        settings = settings or get_settings().google_sheets
        self._client = client or GoogleSheetsClient(settings)
        self._invoices = GoogleSheetsRecordStorage(
            INVOICE,
            self._client,
            settings.invoices_sheet_name,
            INVOICE_COLUMNS,
        )
        self._expenses = GoogleSheetsRecordStorage(
            EXPENSE,
            self._client,
            settings.expenses_sheet_name,
            EXPENSE_COLUMNS,
        )

    @property
    def invoices(self):
        return self._invoices

    @property
    def expenses(self):
        return self._expenses

    async def snapshot(self) -> LedgerSnapshot:
        try:
            # Make sure both sheets exist before the batch read
            self._invoices._sheet()
            self._expenses._sheet()

            response = self._client.get_spreadsheet().values_batch_get(
                [
                    self._invoices.a1_range,
                    self._expenses.a1_range,
                ]
            )
            invoice_range, expense_range = response["valueRanges"]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read ledger snapshot: {e}") from e

        return LedgerSnapshot(
            invoices=self._invoices._records_from_values(invoice_range.get("values", [])),
            expenses=self._expenses._records_from_values(expense_range.get("values", [])),
        )

    async def ping(self) -> bool:
        try:
            self._client.get_spreadsheet()
            return True
        except StorageError as e:
            logger.warning("google_sheets_ping_failed", error=str(e))
            return False
