import threading

import pytest

from xv6sim.spinlock import MAX_PCS, Cpu, LockError, SpinLock


def test_acquire_and_release():
    cpu = Cpu(0)
    lock = SpinLock("time")
    assert not lock.holding(cpu)
    lock.acquire(cpu)
    assert lock.holding(cpu)
    assert lock.locked
    assert lock.cpu is cpu
    lock.release(cpu)
    assert not lock.holding(cpu)
    assert not lock.locked
    assert lock.cpu is None


def test_other_cpu_does_not_hold():
    a, b = Cpu(0), Cpu(1)
    lock = SpinLock("x")
    lock.acquire(a)
    assert not lock.holding(b)
    with pytest.raises(LockError):
        lock.release(b)
    lock.release(a)
    assert not lock.locked


def test_double_acquire_raises_and_restores_nesting():
    cpu = Cpu(0)
    cpu.sti()
    lock = SpinLock("x")
    lock.acquire(cpu)
    with pytest.raises(LockError):
        lock.acquire(cpu)
    assert cpu.ncli == 1
    lock.release(cpu)
    assert cpu.ncli == 0
    assert cpu.interrupts


def test_release_unheld_raises():
    with pytest.raises(LockError):
        SpinLock("x").release(Cpu(0))


def test_acquire_disables_interrupts_until_release():
    cpu = Cpu(0)
    cpu.sti()
    lock = SpinLock("x")
    lock.acquire(cpu)
    assert not cpu.interrupts
    lock.release(cpu)
    assert cpu.interrupts


def test_push_pop_nesting():
    cpu = Cpu(0)
    cpu.sti()
    cpu.push_cli()
    cpu.push_cli()
    assert not cpu.interrupts
    cpu.pop_cli()
    assert not cpu.interrupts
    assert cpu.ncli == 1
    cpu.pop_cli()
    assert cpu.interrupts
    assert cpu.ncli == 0


def test_interrupts_stay_off_if_they_were_off():
    cpu = Cpu(0)
    cpu.push_cli()
    cpu.pop_cli()
    assert not cpu.interrupts


def test_pop_cli_errors():
    cpu = Cpu(0)
    with pytest.raises(LockError):
        cpu.pop_cli()
    cpu.push_cli()
    cpu.sti()
    with pytest.raises(LockError):
        cpu.pop_cli()


def test_call_stack_recorded_while_held():
    cpu = Cpu(0)
    lock = SpinLock("x")
    lock.acquire(cpu)
    assert 0 < len(lock.pcs) <= MAX_PCS
    assert "test_call_stack_recorded_while_held" in lock.pcs[0]
    lock.release(cpu)
    assert lock.pcs == []


def test_lock_excludes_other_cpus():
    lock = SpinLock("counter")
    counter = {"n": 0}
    rounds = 2000

    def work(cpu_id):
        cpu = Cpu(cpu_id)
        for _ in range(rounds):
            lock.acquire(cpu)
            value = counter["n"]
            counter["n"] = value + 1
            lock.release(cpu)

    threads = [threading.Thread(target=work, args=(i,)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert counter["n"] == 4 * rounds
    assert not lock.locked