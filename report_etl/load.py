"""
Google Sheets Loading

Writes the report grid into its fixed range on the target worksheet.
Handles authentication via a service account.
"""

import logging
from typing import Optional

import google.auth.exceptions
import gspread
import requests
from google.oauth2.service_account import Credentials
from gspread.utils import ValueInputOption, a1_range_to_grid_range

from report_etl.errors import ConfigurationError, WriteError
from report_etl.transform import SheetGrid

logger = logging.getLogger(__name__)


class GoogleSheetsWriter:
    """
    Overwrites one fixed range of a worksheet with the report grid.

    Formula strings are entered as formulas (user-entered input mode).
    """

    SCOPES = [
        "https://www.googleapis.com/auth/spreadsheets",
    ]

    def __init__(
        self,
        credentials_path: str,
        spreadsheet_id: str,
        sheet_name: str = "Для бота2",
        cell_range: str = "A10:E21",
    ):
        """
        Initialize Google Sheets writer.

        Args:
            credentials_path: Path to service account JSON file
            spreadsheet_id: Google Sheet ID
            sheet_name: Name of the sheet tab
            cell_range: A1 notation of the target block

        Raises:
            ConfigurationError: If the spreadsheet id, range or credentials are unusable
        """
        if not spreadsheet_id:
            raise ConfigurationError("Spreadsheet ID is not configured properly")
        self.credentials_path = credentials_path
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.cell_range = cell_range
        self.rows, self.columns = self._range_shape(cell_range)
        self.client: Optional[gspread.Client] = None
        self._authenticate()
        logger.info(f"GoogleSheetsWriter initialized for range {self.target}")

    @property
    def target(self) -> str:
        return f"{self.sheet_name}!{self.cell_range}"

    @staticmethod
    def _range_shape(cell_range: str):
        try:
            grid_range = a1_range_to_grid_range(cell_range)
            rows = grid_range["endRowIndex"] - grid_range["startRowIndex"]
            columns = grid_range["endColumnIndex"] - grid_range["startColumnIndex"]
        except (KeyError, ValueError, gspread.exceptions.GSpreadException) as e:
            raise ConfigurationError(f"Invalid sheet range: {cell_range!r}", cause=e) from e
        if rows <= 0 or columns <= 0:
            raise ConfigurationError(f"Invalid sheet range: {cell_range!r}")
        return rows, columns

    def _authenticate(self) -> None:
        """
        Authenticate with Google Sheets API using service account.

        Raises:
            ConfigurationError: If the credentials file is missing or malformed
        """
        try:
            credentials = Credentials.from_service_account_file(
                self.credentials_path, scopes=self.SCOPES
            )
            self.client = gspread.authorize(credentials)
            logger.info("Successfully authenticated with Google Sheets API")
        except FileNotFoundError as e:
            logger.error(f"Credentials file not found: {self.credentials_path}")
            raise ConfigurationError(
                f"Credentials file not found: {self.credentials_path}", cause=e
            ) from e
        except (ValueError, google.auth.exceptions.GoogleAuthError) as e:
            logger.error(f"Google Sheets authentication failed: {e}")
            raise ConfigurationError(
                "Google Sheets credentials are invalid", cause=e
            ) from e

    def write(self, grid: SheetGrid) -> int:
        """
        Overwrite the target range with the grid.

        Args:
            grid: Rows of cell values matching the range shape

        Returns:
            Number of cells updated

        Raises:
            WriteError: If the grid does not fit the range or the update fails
        """
        self._check_shape(grid)
        logger.info(f"Updating Google Sheets range {self.target}")
        logger.debug(f"Values: {grid}")

        try:
            spreadsheet = self.client.open_by_key(self.spreadsheet_id)
            worksheet = spreadsheet.worksheet(self.sheet_name)
            result = worksheet.update(
                values=grid,
                range_name=self.cell_range,
                value_input_option=ValueInputOption.user_entered,
            )
        except gspread.exceptions.SpreadsheetNotFound as e:
            logger.error(f"Spreadsheet not found: {self.spreadsheet_id}")
            raise WriteError("Spreadsheet not found", cause=e) from e
        except gspread.exceptions.WorksheetNotFound as e:
            logger.error(f"Worksheet '{self.sheet_name}' not found in spreadsheet")
            raise WriteError(f"Worksheet '{self.sheet_name}' not found", cause=e) from e
        except (
            gspread.exceptions.GSpreadException,
            google.auth.exceptions.GoogleAuthError,
            requests.RequestException,
        ) as e:
            logger.error(f"Error updating Google Sheets: {e}")
            raise WriteError("Error updating Google Sheets", cause=e) from e

        updated = (result or {}).get("updatedCells", 0)
        logger.info(f"Google Sheets update: {updated} cells updated.")
        return updated

    def _check_shape(self, grid: SheetGrid) -> None:
        if len(grid) != self.rows or any(len(row) != self.columns for row in grid):
            widths = sorted({len(row) for row in grid})
            raise WriteError(
                f"Grid of {len(grid)} rows (widths {widths}) does not match "
                f"range {self.cell_range} ({self.rows}x{self.columns})"
            )
