"""SQLite-backed device registry holding per-assistant capability documents."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from voicelink.models.device import Assistant, Device, DeviceCapabilities

PAGE_SIZE = 100


class DeviceRegistry:
    """Device records keyed by id, with capability documents in ``additional_info``."""

    def __init__(self, db_path: str, *, page_size: int = PAGE_SIZE) -> None:
        self._db_path = Path(db_path)
        self._page_size = page_size
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS devices (
                    id TEXT PRIMARY KEY,
                    tenant_id TEXT NOT NULL,
                    customer_id TEXT,
                    name TEXT NOT NULL,
                    label TEXT,
                    type TEXT NOT NULL,
                    created_time INTEGER,
                    additional_info TEXT NOT NULL DEFAULT '{}'
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS devices_tenant ON devices (tenant_id, name)"
            )

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Device:
        return Device(
            id=row["id"],
            tenant_id=row["tenant_id"],
            customer_id=row["customer_id"],
            name=row["name"],
            label=row["label"],
            type=row["type"],
            created_time=row["created_time"],
            additional_info=json.loads(row["additional_info"] or "{}"),
        )

    def save_device(self, device: Device) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO devices (
                    id, tenant_id, customer_id, name, label, type,
                    created_time, additional_info
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    tenant_id = excluded.tenant_id,
                    customer_id = excluded.customer_id,
                    name = excluded.name,
                    label = excluded.label,
                    type = excluded.type,
                    additional_info = excluded.additional_info
                """,
                (
                    device.id,
                    device.tenant_id,
                    device.customer_id,
                    device.name,
                    device.label,
                    device.type,
                    device.created_time,
                    json.dumps(device.additional_info),
                ),
            )

    def find_device(self, device_id: str) -> Optional[Device]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM devices WHERE id = ?", (device_id,)
            ).fetchone()
        return self._from_row(row) if row else None

    def list_tenant_devices(
        self, tenant_id: str, *, page: int = 0, customer_id: Optional[str] = None
    ) -> List[Device]:
        """Return one page of a tenant's devices ordered by name."""
        query = "SELECT * FROM devices WHERE tenant_id = ?"
        params: List[Any] = [tenant_id]
        if customer_id:
            query += " AND customer_id = ?"
            params.append(customer_id)
        query += " ORDER BY name, id LIMIT ? OFFSET ?"
        params.extend([self._page_size, page * self._page_size])
        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._from_row(row) for row in rows]

    def iter_tenant_devices(
        self, tenant_id: str, *, customer_id: Optional[str] = None
    ) -> Iterator[Device]:
        page = 0
        while True:
            devices = self.list_tenant_devices(
                tenant_id, page=page, customer_id=customer_id
            )
            yield from devices
            if len(devices) < self._page_size:
                return
            page += 1

    def save_capabilities(
        self, device_id: str, assistant: Assistant, capabilities: DeviceCapabilities
    ) -> bool:
        """Replace one assistant's document, leaving other keys untouched."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT additional_info FROM devices WHERE id = ?", (device_id,)
            ).fetchone()
            if not row:
                return False
            info: Dict[str, Any] = json.loads(row["additional_info"] or "{}")
            info[assistant.capabilities_key] = capabilities.to_document()
            conn.execute(
                "UPDATE devices SET additional_info = ? WHERE id = ?",
                (json.dumps(info), device_id),
            )
        return True


__all__ = ["DeviceRegistry", "PAGE_SIZE"]
