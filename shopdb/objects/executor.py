"""
Database Object Scripts

Runs the per-dialect SQL files that provision reporting views, functions and
procedures. Files are executed in name order, one batch per transaction, so
a failed batch never poisons the ones after it.
"""

from pathlib import Path
import re
from typing import List, Union

import structlog
from sqlalchemy import inspect
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine

from shopdb.exceptions import ScriptExecutionError

logger = structlog.get_logger(__name__)

SENTINEL_VIEW = "vw_UserProfileSummary"

_GO_LINE = re.compile(r"^\s*GO\s*$", re.IGNORECASE)
_COMMENT_LINE = re.compile(r"^\s*--")


def _is_blank(batch: str) -> bool:
    return all(not line.strip() or _COMMENT_LINE.match(line) for line in batch.splitlines())


def split_batches(content: str) -> List[str]:
    """
    Split a script into executable batches.

    A batch ends at a line holding only ``GO`` or at a line ending with ``;``.
    Semicolons inside ``$$``-quoted bodies do not end a batch. Batches made of
    comments and whitespace only are dropped.
    """
    batches: List[str] = []
    current: List[str] = []
    in_body = False

    def flush() -> None:
        batch = "\n".join(current).strip()
        if batch and not _is_blank(batch):
            batches.append(batch)
        current.clear()

    for line in content.splitlines():
        if not in_body and _GO_LINE.match(line):
            flush()
            continue

        current.append(line)
        if line.count("$$") % 2 == 1:
            in_body = not in_body

        if not in_body and line.rstrip().endswith(";"):
            flush()

    flush()
    return batches


def is_already_exists(error: Exception) -> bool:
    return "already exists" in str(error).lower()


class DatabaseScriptExecutor:
    """
    Executes object scripts against an engine.

    Example:
        executor = DatabaseScriptExecutor(engine)
        await executor.execute_scripts(Path("shopdb/database/scripts/sqlite"))
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    async def execute_scripts(self, directory: Union[str, Path]) -> int:
        """
        Run every ``*.sql`` file in ``directory``.

        Returns:
            Number of script files executed (0 when the directory is missing)
        """
        directory = Path(directory)
        if not directory.is_dir():
            logger.warning("Scripts directory not found", directory=str(directory))
            return 0

        scripts = sorted(directory.glob("*.sql"))
        logger.info("Executing database scripts", directory=str(directory), files=len(scripts))
        for script in scripts:
            await self.execute_script_file(script)
        return len(scripts)

    async def execute_script_file(self, path: Union[str, Path]) -> int:
        """
        Run one script file batch by batch.

        Returns:
            Number of batches that executed (skipped ones excluded)

        Raises:
            ScriptExecutionError: A batch failed for a reason other than the
                object already existing
        """
        path = Path(path)
        batches = split_batches(path.read_text(encoding="utf-8"))
        executed = 0

        for index, batch in enumerate(batches, start=1):
            try:
                async with self.engine.begin() as conn:
                    await conn.exec_driver_sql(batch)
            except DBAPIError as e:
                if is_already_exists(e):
                    logger.info("Object already exists, skipping", script=path.name, batch=index)
                    continue
                logger.error("Script batch failed", script=path.name, batch=index, error=str(e.orig))
                raise ScriptExecutionError(path.name, index, str(e.orig)) from e
            executed += 1

        logger.info("Script executed", script=path.name, batches=len(batches), executed=executed)
        return executed

    async def objects_exist(self) -> bool:
        """True once the reporting views have been provisioned"""
        async with self.engine.connect() as conn:
            views = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_view_names())
        return SENTINEL_VIEW.lower() in {name.lower() for name in views}
