# backend/services/connection_registry.py
"""
Live connections, stored in an arena of slots addressed by generation-checked
handles. A handle goes stale the moment its connection is removed, so late
results from a torn-down connection can never reach a reused slot.

Each connection gets an asyncio.Queue and a single worker task; everything for
that connection (client events, timer callbacks) runs through the queue in
order. The session itself is opened inside `connect`, before the worker starts.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from core.request_id import request_id_var
from services.orchestrator import Emit, InterviewOrchestrator, Submit, Work

log = logging.getLogger(__name__)

Send = Callable[[Dict[str, Any]], Awaitable[None]]
OrchestratorFactory = Callable[[Emit, Submit], InterviewOrchestrator]

_STOP = object()


@dataclass(frozen=True)
class ConnectionHandle:
    slot: int
    generation: int


@dataclass
class _Connection:
    handle: ConnectionHandle
    connection_id: str
    orchestrator: InterviewOrchestrator
    queue: asyncio.Queue
    worker: Optional[asyncio.Task] = None


@dataclass
class _Slot:
    generation: int = 0
    entry: Optional[_Connection] = None


class ConnectionRegistry:
    def __init__(self, factory: OrchestratorFactory):
        self._factory = factory
        self._slots: List[_Slot] = []
        self._free: List[int] = []
        self._retired: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return sum(1 for s in self._slots if s.entry is not None)

    def _lookup(self, handle: ConnectionHandle) -> Optional[_Connection]:
        if handle.slot >= len(self._slots):
            return None
        slot = self._slots[handle.slot]
        if slot.generation != handle.generation:
            return None
        return slot.entry

    def get(self, handle: ConnectionHandle) -> Optional[InterviewOrchestrator]:
        conn = self._lookup(handle)
        return conn.orchestrator if conn else None

    def connection_id(self, handle: ConnectionHandle) -> Optional[str]:
        conn = self._lookup(handle)
        return conn.connection_id if conn else None

    async def connect(self, send: Send) -> ConnectionHandle:
        if self._free:
            index = self._free.pop()
        else:
            self._slots.append(_Slot())
            index = len(self._slots) - 1
        slot = self._slots[index]
        handle = ConnectionHandle(index, slot.generation)

        async def emit(event: str, data: Dict[str, Any]) -> None:
            # stale handle: the client is gone
            if self._lookup(handle) is None:
                return
            await send({"event": event, "data": data})

        def submit(work: Work) -> bool:
            return self.submit(handle, work)

        conn = _Connection(
            handle=handle,
            connection_id=uuid.uuid4().hex,
            orchestrator=self._factory(emit, submit),
            queue=asyncio.Queue(),
        )
        slot.entry = conn
        # the session exists before the handle is handed out, so an immediate
        # disconnect still closes it
        token = request_id_var.set(conn.connection_id)
        try:
            await conn.orchestrator.open()
        except Exception:
            slot.generation += 1
            slot.entry = None
            self._free.append(index)
            raise
        finally:
            request_id_var.reset(token)
        conn.worker = asyncio.create_task(self._run(conn))
        log.info("Client connected", extra={"connection_id": conn.connection_id, "live": len(self)})
        return handle

    def submit(self, handle: ConnectionHandle, work: Work) -> bool:
        conn = self._lookup(handle)
        if conn is None:
            return False
        conn.queue.put_nowait(work)
        return True

    async def disconnect(self, handle: ConnectionHandle) -> None:
        conn = self._lookup(handle)
        if conn is None:
            return
        slot = self._slots[handle.slot]
        slot.generation += 1
        slot.entry = None
        self._free.append(handle.slot)

        # queued-but-unstarted work is dropped; an in-flight item finishes and is discarded
        while not conn.queue.empty():
            conn.queue.get_nowait()
        conn.queue.put_nowait(_STOP)

        await conn.orchestrator.close()

        if conn.worker is not None and not conn.worker.done():
            self._retired.add(conn.worker)
            conn.worker.add_done_callback(self._retired.discard)
        log.info("Client disconnected", extra={"connection_id": conn.connection_id, "live": len(self)})

    async def join(self) -> None:
        """Wait for workers of disconnected clients to finish their in-flight item."""
        if self._retired:
            await asyncio.gather(*list(self._retired), return_exceptions=True)

    async def _run(self, conn: _Connection) -> None:
        request_id_var.set(conn.connection_id)
        while True:
            work = await conn.queue.get()
            if work is _STOP:
                break
            try:
                await work()
            except Exception:
                log.exception("Unhandled error while processing connection event")
