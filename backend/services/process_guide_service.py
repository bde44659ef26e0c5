import aiosqlite
import sqlite3
import uuid
import logging
from typing import List, Optional
from datetime import datetime, timezone
from schemas.process_guide import (
    Process, ProcessStep, StepBranch,
    ProcessGuideCreate, ProcessGuideUpdate, ProcessGuideDetail,
    DatabaseExport, DatabaseStats
)
from services.sample_guides import SampleGuidesService

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS processes (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    category TEXT DEFAULT '',
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS steps (
    id TEXT PRIMARY KEY,
    process_id TEXT NOT NULL,
    step_number INTEGER NOT NULL,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    is_decision INTEGER DEFAULT 0,
    next_step_id TEXT DEFAULT NULL,
    next_step_explicit INTEGER DEFAULT 0,
    FOREIGN KEY (process_id) REFERENCES processes(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS branches (
    id TEXT PRIMARY KEY,
    step_id TEXT NOT NULL,
    condition_type TEXT NOT NULL,
    next_step_id TEXT DEFAULT NULL,
    description TEXT DEFAULT '',
    FOREIGN KEY (step_id) REFERENCES steps(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_steps_process ON steps(process_id, step_number);
CREATE INDEX IF NOT EXISTS idx_branches_step ON branches(step_id);
"""


class ProcessGuideServiceError(Exception):
    """Raised when a process guide cannot be stored"""
    pass


class ProcessNotFoundError(ProcessGuideServiceError):
    """Raised when a process id does not exist"""
    pass


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_step(row) -> ProcessStep:
    data = dict(row)
    fields = {
        "id": data["id"],
        "process_id": data["process_id"],
        "step_number": data["step_number"],
        "title": data["title"],
        "description": data["description"] or "",
        "is_decision": bool(data["is_decision"]),
    }
    # Only pass next_step_id when it was set explicitly, so "absent" survives the round trip
    if data["next_step_explicit"]:
        fields["next_step_id"] = data["next_step_id"]
    return ProcessStep(**fields)


def _row_to_branch(row) -> StepBranch:
    data = dict(row)
    return StepBranch(
        id=data["id"],
        step_id=data["step_id"],
        condition=data["condition_type"],
        next_step_id=data["next_step_id"],
        description=data["description"] or "",
    )


class ProcessGuideService:
    def __init__(self, database_path: str):
        self.database_path = database_path
        self.db: Optional[aiosqlite.Connection] = None
        self.samples_service = SampleGuidesService()

    async def connect(self):
        """Initialize database connection and make sure the tables exist"""
        self.db = await aiosqlite.connect(self.database_path)
        self.db.row_factory = aiosqlite.Row
        await self.db.execute("PRAGMA foreign_keys = ON")
        await self.db.executescript(SCHEMA_SQL)
        await self.db.commit()

    async def close(self):
        """Close database connection"""
        if self.db:
            await self.db.close()
            self.db = None

    # Process Methods
    async def list_processes(self, search: Optional[str] = None,
                             category: Optional[str] = None) -> List[Process]:
        """Get processes, newest first, optionally matching a search term and category"""
        conditions = []
        params = []
        if search:
            conditions.append("(title LIKE ? OR description LIKE ?)")
            params.extend([f"%{search}%", f"%{search}%"])
        if category:
            conditions.append("category = ?")
            params.append(category)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        async with self.db.execute(f"""
            SELECT id, title, description, category, created_at, updated_at
            FROM processes {where} ORDER BY created_at DESC
        """, params) as cursor:
            rows = await cursor.fetchall()
            return [Process(**dict(row)) for row in rows]

    async def get_process(self, process_id: str) -> Process:
        async with self.db.execute("""
            SELECT id, title, description, category, created_at, updated_at
            FROM processes WHERE id = ?
        """, (process_id,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise ProcessNotFoundError(f"Process '{process_id}' not found")
        return Process(**dict(row))

    async def get_steps(self, process_id: str) -> List[ProcessStep]:
        async with self.db.execute("""
            SELECT id, process_id, step_number, title, description, is_decision, next_step_id, next_step_explicit
            FROM steps WHERE process_id = ? ORDER BY step_number
        """, (process_id,)) as cursor:
            rows = await cursor.fetchall()
            return [_row_to_step(row) for row in rows]

    async def get_branches(self, process_id: str) -> List[StepBranch]:
        async with self.db.execute("""
            SELECT b.id, b.step_id, b.condition_type, b.next_step_id, b.description
            FROM branches b JOIN steps s ON s.id = b.step_id
            WHERE s.process_id = ? ORDER BY b.rowid
        """, (process_id,)) as cursor:
            rows = await cursor.fetchall()
            return [_row_to_branch(row) for row in rows]

    async def get_process_detail(self, process_id: str) -> ProcessGuideDetail:
        """Get a process with its steps and branches"""
        process = await self.get_process(process_id)
        steps = await self.get_steps(process_id)
        branches = await self.get_branches(process_id)
        return ProcessGuideDetail(process=process, steps=steps, branches=branches)

    async def create_process(self, guide: ProcessGuideCreate) -> ProcessGuideDetail:
        """Create a process together with its steps and branches"""
        process_id = guide.process.id or str(uuid.uuid4())
        now = _now()
        try:
            await self.db.execute("""
                INSERT INTO processes (id, title, description, category, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (process_id, guide.process.title, guide.process.description,
                  guide.process.category, now, now))
            await self._insert_steps(process_id, guide.steps, guide.branches)
            await self.db.commit()
        except sqlite3.IntegrityError as e:
            await self.db.rollback()
            raise ProcessGuideServiceError(f"Failed to create process: {e}")
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Created process {process_id}: {len(guide.steps)} steps, {len(guide.branches)} branches")
        return await self.get_process_detail(process_id)

    async def update_process(self, process_id: str, guide: ProcessGuideUpdate) -> ProcessGuideDetail:
        """Update a process and replace its steps and branches wholesale"""
        await self.get_process(process_id)
        try:
            await self.db.execute("""
                UPDATE processes SET title = ?, description = ?, category = ?, updated_at = ?
                WHERE id = ?
            """, (guide.process.title, guide.process.description, guide.process.category,
                  _now(), process_id))
            await self.db.execute("DELETE FROM steps WHERE process_id = ?", (process_id,))
            await self._insert_steps(process_id, guide.steps, guide.branches)
            await self.db.commit()
        except sqlite3.IntegrityError as e:
            await self.db.rollback()
            raise ProcessGuideServiceError(f"Failed to update process: {e}")
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Updated process {process_id}: {len(guide.steps)} steps, {len(guide.branches)} branches")
        return await self.get_process_detail(process_id)

    async def delete_process(self, process_id: str):
        """Delete a process; steps and branches cascade"""
        await self.get_process(process_id)
        await self.db.execute("DELETE FROM processes WHERE id = ?", (process_id,))
        await self.db.commit()
        logger.info(f"Deleted process {process_id}")

    async def _insert_steps(self, process_id: str, steps: List[ProcessStep], branches: List[StepBranch]):
        step_ids = set()
        for step in steps:
            step_ids.add(step.id)
            await self.db.execute("""
                INSERT INTO steps (id, process_id, step_number, title, description, is_decision,
                                   next_step_id, next_step_explicit)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (step.id, process_id, step.step_number, step.title, step.description,
                  1 if step.is_decision else 0, step.next_step_id,
                  1 if step.has_explicit_next else 0))

        for branch in branches:
            if branch.step_id not in step_ids:
                logger.warning(f"Skipping branch {branch.id}: step '{branch.step_id}' is not part of process {process_id}")
                continue
            await self.db.execute("""
                INSERT INTO branches (id, step_id, condition_type, next_step_id, description)
                VALUES (?, ?, ?, ?, ?)
            """, (branch.id, branch.step_id, branch.condition, branch.next_step_id, branch.description))

    # Database Management Methods
    async def export_database(self) -> DatabaseExport:
        """Dump every process, step and branch"""
        processes = await self.list_processes()
        async with self.db.execute("""
            SELECT id, process_id, step_number, title, description, is_decision, next_step_id, next_step_explicit
            FROM steps ORDER BY process_id, step_number
        """) as cursor:
            steps = [_row_to_step(row) for row in await cursor.fetchall()]
        async with self.db.execute("""
            SELECT id, step_id, condition_type, next_step_id, description
            FROM branches ORDER BY rowid
        """) as cursor:
            branches = [_row_to_branch(row) for row in await cursor.fetchall()]
        return DatabaseExport(processes=processes, steps=steps, branches=branches)

    async def import_database(self, data: DatabaseExport) -> DatabaseStats:
        """Replace all data with an export payload"""
        try:
            await self.db.execute("DELETE FROM processes")
            for process in data.processes:
                await self.db.execute("""
                    INSERT INTO processes (id, title, description, category, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (process.id, process.title, process.description, process.category,
                      process.created_at or _now(), process.updated_at or _now()))
            for process in data.processes:
                steps = [s for s in data.steps if s.process_id == process.id]
                step_ids = {s.id for s in steps}
                await self._insert_steps(
                    process.id,
                    steps,
                    [b for b in data.branches if b.step_id in step_ids],
                )
            await self.db.commit()
        except sqlite3.IntegrityError as e:
            await self.db.rollback()
            raise ProcessGuideServiceError(f"Failed to import database: {e}")
        except Exception:
            await self.db.rollback()
            raise

        stats = await self.get_stats()
        logger.info(f"Imported {stats.processes} processes, {stats.steps} steps, {stats.branches} branches")
        return stats

    async def get_stats(self) -> DatabaseStats:
        counts = {}
        for table in ("processes", "steps", "branches"):
            async with self.db.execute(f"SELECT COUNT(*) FROM {table}") as cursor:
                row = await cursor.fetchone()
                counts[table] = row[0]
        return DatabaseStats(**counts)

    async def seed_samples(self) -> List[str]:
        """Insert the bundled sample guides that are not in the database yet"""
        seeded = []
        for sample in self.samples_service.get_all():
            async with self.db.execute("SELECT 1 FROM processes WHERE id = ?", (sample.process.id,)) as cursor:
                if await cursor.fetchone():
                    continue
            await self.db.execute("""
                INSERT INTO processes (id, title, description, category, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (sample.process.id, sample.process.title, sample.process.description,
                  sample.process.category, sample.process.created_at, sample.process.updated_at))
            await self._insert_steps(sample.process.id, sample.steps, sample.branches)
            seeded.append(sample.process.id)
        await self.db.commit()
        if seeded:
            logger.info(f"Seeded sample guides: {', '.join(seeded)}")
        return seeded
