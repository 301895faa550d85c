"""
Google Sheets access for the order ledger and the remote menu.

Authenticates with a service account (JWT) and talks to the Sheets v4 API
through google-api-python-client. Every request goes through an httplib2
transport with a bounded timeout and is executed without client-side retries;
a timed-out or failed call surfaces as SheetsError.

Environment variables (see config.py):
- GOOGLE_SERVICE_ACCOUNT_EMAIL
- Either GOOGLE_PRIVATE_KEY (literal \\n allowed) or GOOGLE_PRIVATE_KEY_BASE64
  (recommended where multi-line secrets are awkward)

The target spreadsheet must be shared with the service account email.
"""

import base64
import binascii
import logging
from typing import Any, Dict, List, Optional

import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import (
    GOOGLE_PRIVATE_KEY,
    GOOGLE_PRIVATE_KEY_BASE64,
    GOOGLE_SERVICE_ACCOUNT_EMAIL,
    SHEETS_SCOPES,
    SHEETS_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"


class SheetsConfigError(RuntimeError):
    """Raised when credentials or the spreadsheet id are missing."""


class SheetsError(RuntimeError):
    """Raised when a Sheets API call fails or times out."""


# =============================================================================
# Credentials
# =============================================================================

def normalize_private_key_text(key: str) -> str:
    """Strip surrounding quotes and turn literal \\n sequences into newlines."""
    k = (key or "").strip()
    if len(k) >= 2 and k[0] == k[-1] and k[0] in ("'", '"'):
        k = k[1:-1]
    return k.replace("\\n", "\n")


def get_private_key(raw_key: str = None, raw_key_base64: str = None) -> str:
    """
    Prefer the base64 variant when present, otherwise fall back to the text key.
    """
    raw_key = GOOGLE_PRIVATE_KEY if raw_key is None else raw_key
    raw_key_base64 = GOOGLE_PRIVATE_KEY_BASE64 if raw_key_base64 is None else raw_key_base64

    b64 = (raw_key_base64 or "").strip()
    if b64:
        try:
            return base64.b64decode(b64, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            logger.warning("GOOGLE_PRIVATE_KEY_BASE64 could not be decoded: %s", e)
    return normalize_private_key_text(raw_key or "")


def build_credentials(
    email: str = None,
    private_key: str = None,
) -> service_account.Credentials:
    email = email if email is not None else GOOGLE_SERVICE_ACCOUNT_EMAIL
    if not email:
        raise SheetsConfigError("GOOGLE_SERVICE_ACCOUNT_EMAIL is not set")

    key = private_key if private_key is not None else get_private_key()
    if not key:
        raise SheetsConfigError("GOOGLE_PRIVATE_KEY or GOOGLE_PRIVATE_KEY_BASE64 is not set")

    info = {
        "type": "service_account",
        "client_email": email,
        "private_key": key,
        "token_uri": TOKEN_URI,
    }
    try:
        return service_account.Credentials.from_service_account_info(info, scopes=SHEETS_SCOPES)
    except ValueError as e:
        raise SheetsConfigError(f"Invalid service account key: {e}") from e


# =============================================================================
# Client
# =============================================================================

class SheetsClient:
    """
    Thin wrapper over the spreadsheets resource of the Sheets v4 API.

    Args:
        spreadsheet_id: Target spreadsheet
        service: Prebuilt discovery resource (tests inject a fake)
    """

    def __init__(self, spreadsheet_id: str, service: Any = None):
        if not spreadsheet_id:
            raise SheetsConfigError("SHEET_ID is not set")
        self.spreadsheet_id = spreadsheet_id
        self._service = service
        self._sheet_ids: Dict[str, int] = {}

    @classmethod
    def from_env(cls, spreadsheet_id: str, timeout: float = SHEETS_TIMEOUT_SECONDS) -> "SheetsClient":
        creds = build_credentials()
        http = google_auth_httplib2.AuthorizedHttp(creds, http=httplib2.Http(timeout=timeout))
        service = build("sheets", "v4", http=http, cache_discovery=False)
        return cls(spreadsheet_id, service=service)

    @property
    def spreadsheets(self):
        return self._service.spreadsheets()

    def _execute(self, request, what: str) -> Dict[str, Any]:
        try:
            return request.execute(num_retries=0) or {}
        except (HttpError, httplib2.HttpLib2Error, GoogleAuthError, OSError) as e:
            raise SheetsError(f"Sheets {what} failed: {e}") from e

    def get_sheet_id(self, title: str) -> Optional[int]:
        """Numeric sheetId of the tab with the given title, or None."""
        if title in self._sheet_ids:
            return self._sheet_ids[title]

        meta = self._execute(
            self.spreadsheets.get(spreadsheetId=self.spreadsheet_id, includeGridData=False),
            "get",
        )
        for sheet in meta.get("sheets", []):
            props = sheet.get("properties", {})
            if props.get("title") == title:
                self._sheet_ids[title] = props.get("sheetId")
                return self._sheet_ids[title]
        return None

    def ensure_sheet(self, title: str, header: List[str]) -> None:
        """Create the tab and write its header row if it doesn't exist yet."""
        if self.get_sheet_id(title) is not None:
            return

        logger.info("Creating sheet tab %r", title)
        reply = self._execute(
            self.spreadsheets.batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"requests": [{"addSheet": {"properties": {"title": title}}}]},
            ),
            "addSheet",
        )
        for r in reply.get("replies", []):
            props = r.get("addSheet", {}).get("properties", {})
            if props.get("title") == title:
                self._sheet_ids[title] = props.get("sheetId")

        self._execute(
            self.spreadsheets.values().update(
                spreadsheetId=self.spreadsheet_id,
                range=f"{title}!A1:{_column_letter(len(header))}1",
                valueInputOption="RAW",
                body={"values": [header]},
            ),
            "header write",
        )

    def append_row(self, title: str, values: List[Any]) -> str:
        """Append one row and return the updatedRange locator (e.g. 'Orders!A7:L7')."""
        reply = self._execute(
            self.spreadsheets.values().append(
                spreadsheetId=self.spreadsheet_id,
                range=f"{title}!A1:{_column_letter(len(values))}1",
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": [values]},
            ),
            "append",
        )
        return (reply.get("updates") or {}).get("updatedRange", "")

    def read_values(self, range_: str, value_render_option: str = "FORMATTED_VALUE") -> List[List[Any]]:
        reply = self._execute(
            self.spreadsheets.values().get(
                spreadsheetId=self.spreadsheet_id,
                range=range_,
                valueRenderOption=value_render_option,
            ),
            "read",
        )
        return reply.get("values") or []

    def read_row(self, title: str, row: int, width: int) -> List[Any]:
        values = self.read_values(
            f"{title}!A{row}:{_column_letter(width)}{row}",
            value_render_option="UNFORMATTED_VALUE",
        )
        return values[0] if values else []

    def delete_row(self, title: str, row: int) -> None:
        """Delete a 1-based row; every row below it shifts up by one."""
        sheet_id = self.get_sheet_id(title)
        if sheet_id is None:
            raise SheetsError(f"Sheet tab {title!r} not found")

        self._execute(
            self.spreadsheets.batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={
                    "requests": [
                        {
                            "deleteDimension": {
                                "range": {
                                    "sheetId": sheet_id,
                                    "dimension": "ROWS",
                                    "startIndex": row - 1,
                                    "endIndex": row,
                                }
                            }
                        }
                    ]
                },
            ),
            "deleteDimension",
        )


def _column_letter(n: int) -> str:
    """1 -> A, 12 -> L, 27 -> AA."""
    letters = ""
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters or "A"
