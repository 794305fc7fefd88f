"""
Database Module for Media Monitor Application

This module handles all database operations for the Media Monitor application:
provisioning the three monitor tables, saving analyses with change detection,
recording per-story metadata, and reading results back for reporting.

Every logical operation opens its own connection from the ODBC driver
manager's pool, so concurrent URLs never share a cursor or a transaction.
"""

import json
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import pandas as pd
import pyodbc

from config import settings
from data.models import AnalysisRecord, ImageMetadataRecord, ImageRecord, SaveResult, StoryData
from utils.exceptions import ConnectionError as DatabaseConnectionError
from utils.exceptions import QueryError
from utils.helpers import analyses_equal
from utils.logger import get_logger

logger = get_logger(__name__)

CREATE_TABLES_SQL = [
    """
    IF OBJECT_ID(N'[dbo].[tbl_Images]', N'U') IS NULL
    CREATE TABLE [dbo].[tbl_Images] (
        [Image_ID] NVARCHAR(36) NOT NULL PRIMARY KEY,
        [URL] NVARCHAR(2048) NOT NULL,
        [File_ID] NVARCHAR(255) NULL,
        [Created_At] DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME()
    )
    """,
    """
    IF OBJECT_ID(N'[dbo].[tbl_Image_Analysis]', N'U') IS NULL
    CREATE TABLE [dbo].[tbl_Image_Analysis] (
        [Analysis_ID] NVARCHAR(36) NOT NULL PRIMARY KEY,
        [Image_ID] NVARCHAR(36) NOT NULL UNIQUE
            REFERENCES [dbo].[tbl_Images]([Image_ID]),
        [Analysis_Results] NVARCHAR(MAX) NOT NULL,
        [Created_At] DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME()
    )
    """,
    """
    IF OBJECT_ID(N'[dbo].[tbl_Image_Metadata]', N'U') IS NULL
    CREATE TABLE [dbo].[tbl_Image_Metadata] (
        [Metadata_ID] NVARCHAR(36) NOT NULL PRIMARY KEY,
        [Image_ID] NVARCHAR(36) NOT NULL
            REFERENCES [dbo].[tbl_Images]([Image_ID]),
        [Headline] NVARCHAR(1000) NOT NULL,
        [Image_Hash] NVARCHAR(64) NOT NULL DEFAULT '',
        [Image_URL] NVARCHAR(2048) NOT NULL DEFAULT '',
        [Date_Text] NVARCHAR(255) NULL,
        [Story_URL] NVARCHAR(2048) NULL,
        [Created_At] DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME()
    )
    """,
    """
    IF NOT EXISTS (SELECT 1 FROM sys.indexes WHERE name = 'IX_tbl_Images_URL_Created_At')
    CREATE INDEX [IX_tbl_Images_URL_Created_At] ON [dbo].[tbl_Images]([URL], [Created_At] DESC)
    """,
]

SELECT_LATEST_ANALYSIS_SQL = """
SELECT TOP 1 i.[Image_ID], a.[Analysis_Results]
FROM [dbo].[tbl_Images] i
JOIN [dbo].[tbl_Image_Analysis] a ON a.[Image_ID] = i.[Image_ID]
WHERE i.[URL] = ?
ORDER BY i.[Created_At] DESC
"""

INSERT_IMAGE_SQL = """
INSERT INTO [dbo].[tbl_Images] ([Image_ID], [URL], [File_ID], [Created_At])
VALUES (?, ?, ?, SYSUTCDATETIME())
"""

INSERT_ANALYSIS_SQL = """
INSERT INTO [dbo].[tbl_Image_Analysis] ([Analysis_ID], [Image_ID], [Analysis_Results], [Created_At])
VALUES (?, ?, ?, SYSUTCDATETIME())
"""

INSERT_METADATA_SQL = """
INSERT INTO [dbo].[tbl_Image_Metadata]
    ([Metadata_ID], [Image_ID], [Headline], [Image_Hash], [Image_URL], [Date_Text], [Story_URL])
VALUES (?, ?, ?, ?, ?, ?, ?)
"""

SELECT_METADATA_SQL = """
SELECT m.[Metadata_ID], m.[Image_ID], m.[Headline], m.[Image_Hash], m.[Image_URL],
       m.[Date_Text], m.[Story_URL], m.[Created_At]
FROM [dbo].[tbl_Image_Metadata] m
JOIN [dbo].[tbl_Images] i ON i.[Image_ID] = m.[Image_ID]
WHERE i.[URL] = ?
ORDER BY m.[Created_At] DESC
"""


def _is_unchanged(stored: Any, analysis: Dict[str, Any]) -> bool:
    try:
        return analyses_equal(stored, analysis)
    except (TypeError, ValueError) as e:
        logger.warning(f"Stored analysis could not be decoded, treating as changed: {e}")
        return False


class DatabaseConnection:
    """Database access for the Media Monitor tables."""

    def __init__(self, connection_string: Optional[str] = None):
        """
        Initialize the database layer.

        Args:
            connection_string: ODBC connection string, defaults to settings.DB_CONNECTION_STRING
        """
        self.connection_string = connection_string
        pyodbc.pooling = True

    @contextmanager
    def _connection(self) -> Iterator[pyodbc.Connection]:
        """Open a pooled connection for one logical operation and always release it."""
        try:
            conn = pyodbc.connect(self.connection_string or settings.DB_CONNECTION_STRING, autocommit=False)
            conn.setdecoding(pyodbc.SQL_CHAR, encoding='utf-8')
        except pyodbc.Error as e:
            logger.error(f"Failed to connect to database: {e}")
            raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e

        try:
            yield conn
        finally:
            try:
                conn.close()
            except pyodbc.Error as e:
                logger.warning(f"Error closing database connection: {e}")

    def check_connection(self) -> bool:
        """
        Verify that the database is reachable.

        Returns:
            bool: True if a connection could be opened and queried, False otherwise.
        """
        try:
            with self._connection() as conn:
                conn.cursor().execute("SELECT 1")
            logger.info("Successfully connected to database")
            return True
        except (DatabaseConnectionError, pyodbc.Error) as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    def create_tables(self) -> None:
        """
        Create the monitor tables and index if they do not exist yet.

        Raises:
            QueryError: If any DDL statement fails
        """
        with self._connection() as conn:
            cursor = conn.cursor()
            try:
                for statement in CREATE_TABLES_SQL:
                    cursor.execute(statement)
                conn.commit()
                logger.info("Monitor tables are in place")
            except pyodbc.Error as e:
                conn.rollback()
                raise QueryError(f"Error creating tables: {e}") from e

    def save_analysis(self, url: str, analysis: Dict[str, Any], file_id: Optional[str] = None) -> SaveResult:
        """
        Save an analysis unless it equals the newest one stored for the URL.

        The lookup and the inserts run in one transaction. When nothing
        changed the transaction is rolled back and the existing image id is
        returned.

        Args:
            url: The monitored page URL.
            analysis: JSON-ready analysis dict.
            file_id: Uploaded screenshot reference, if any.

        Returns:
            SaveResult: The image id and whether a new row was written.

        Raises:
            QueryError: If any statement fails; the transaction is rolled back first.
        """
        with self._connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(SELECT_LATEST_ANALYSIS_SQL, (url,))
                row = cursor.fetchone()

                if row is not None and _is_unchanged(row[1], analysis):
                    logger.info(f"No changes detected for {url}, skipping insert")
                    conn.rollback()
                    return SaveResult(image_id=str(row[0]), has_changes=False)

                image = ImageRecord(image_id=str(uuid.uuid4()), url=url, file_id=file_id)
                record = AnalysisRecord(analysis_id=str(uuid.uuid4()), image_id=image.image_id, analysis_results=analysis)
                cursor.execute(INSERT_IMAGE_SQL, (image.image_id, image.url, image.file_id))
                cursor.execute(
                    INSERT_ANALYSIS_SQL,
                    (record.analysis_id, record.image_id, json.dumps(record.analysis_results, ensure_ascii=False))
                )
                conn.commit()
                logger.info(f"Saved new analysis for {url} -> Image ID: {image.image_id}")
                return SaveResult(image_id=image.image_id, has_changes=True)

            except Exception as e:
                conn.rollback()
                logger.error(f"Error saving analysis for {url}: {e}")
                raise QueryError(f"Error saving analysis for {url}: {e}") from e

    def save_image_metadata(self, image_id: str, stories: List[StoryData]) -> int:
        """
        Write one metadata row per story for an image record.

        Args:
            image_id: The image record the stories belong to.
            stories: Stories seen on the page.

        Returns:
            int: Number of rows written.

        Raises:
            QueryError: If the insert fails; nothing is committed in that case.
        """
        if not stories:
            return 0

        records = [ImageMetadataRecord.from_story(str(uuid.uuid4()), image_id, story) for story in stories]
        params = [
            (r.metadata_id, r.image_id, r.headline, r.image_hash, r.image_url, r.date_text, r.story_url)
            for r in records
        ]

        with self._connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.executemany(INSERT_METADATA_SQL, params)
                conn.commit()
            except pyodbc.Error as e:
                conn.rollback()
                raise QueryError(f"Error saving image metadata for {image_id}: {e}") from e

        logger.info(f"Saved {len(records)} stories into image metadata for {image_id}")
        return len(records)

    def get_latest_analysis(self, url: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve the newest stored analysis for a URL.

        Returns:
            Optional[Dict]: The decoded analysis, or None if the URL has none.
        """
        with self._connection() as conn:
            try:
                cursor = conn.cursor()
                cursor.execute(SELECT_LATEST_ANALYSIS_SQL, (url,))
                row = cursor.fetchone()
            except pyodbc.Error as e:
                raise QueryError(f"Error reading analysis for {url}: {e}") from e

        if row is None:
            return None
        stored = row[1]
        return json.loads(stored) if isinstance(stored, (str, bytes)) else stored

    def get_image_metadata(self, url: str) -> Optional[pd.DataFrame]:
        """
        Retrieve every story recorded for a URL, newest first.

        Returns:
            Optional[pd.DataFrame]: The metadata rows, or None if an error occurred.
        """
        try:
            with self._connection() as conn:
                return pd.read_sql(SELECT_METADATA_SQL, conn, params=[url])
        except Exception as e:
            logger.error(f"Error retrieving image metadata for {url}: {e}")
            return None


# Create a default database instance for use throughout the application
db = DatabaseConnection()
