"""Spin locks with per-CPU interrupt-disable nesting."""

import threading
import traceback
from typing import List, Optional

MAX_PCS = 10


class LockError(RuntimeError):
    """Raised when a lock or interrupt nesting is misused."""


class Cpu:
    """A processor's interrupt state as seen by the locking code."""

    def __init__(self, cpu_id: int):
        self.id = cpu_id
        self.ncli = 0
        self.intena = False
        self.interrupts = False

    def sti(self) -> None:
        """Enable interrupts."""
        self.interrupts = True

    def push_cli(self) -> None:
        """Disable interrupts, remembering whether they were on at depth zero."""
        enabled = self.interrupts
        self.interrupts = False
        if self.ncli == 0:
            self.intena = enabled
        self.ncli += 1

    def pop_cli(self) -> None:
        """Undo one :meth:`push_cli`, re-enabling interrupts at depth zero."""
        if self.interrupts:
            raise LockError("popcli - interruptible")
        if self.ncli <= 0:
            raise LockError("popcli")
        self.ncli -= 1
        if self.ncli == 0 and self.intena:
            self.sti()


def _caller_pcs() -> List[str]:
    frames = traceback.extract_stack()[:-2]
    return [f"{f.filename}:{f.lineno} {f.name}" for f in reversed(frames[-MAX_PCS:])]


class SpinLock:
    """A mutual-exclusion lock held by one CPU at a time."""

    def __init__(self, name: str):
        self.name = name
        self.cpu: Optional[Cpu] = None
        self.pcs: List[str] = []
        self._lock = threading.Lock()

    @property
    def locked(self) -> bool:
        """Whether some CPU holds the lock."""
        return self._lock.locked()

    def acquire(self, cpu: Cpu) -> None:
        """Take the lock on ``cpu``, waiting while another CPU holds it."""
        cpu.push_cli()
        if self.holding(cpu):
            cpu.pop_cli()
            raise LockError(f"acquire: {self.name} already held by cpu {cpu.id}")
        self._lock.acquire()
        self.cpu = cpu
        self.pcs = _caller_pcs()

    def release(self, cpu: Cpu) -> None:
        """Give up the lock held by ``cpu``."""
        if not self.holding(cpu):
            raise LockError(f"release: {self.name} not held by cpu {cpu.id}")
        self.pcs = []
        self.cpu = None
        self._lock.release()
        cpu.pop_cli()

    def holding(self, cpu: Cpu) -> bool:
        """Whether ``cpu`` holds the lock."""
        return self.locked and self.cpu is cpu