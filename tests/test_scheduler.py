# -*- coding: utf-8 -*-
import pytest

from ossim.core.process import Process, ProcessState
from ossim.core.scheduler import Scheduler, SchedulingAlgorithm


def make(pid, burst, arrival=0, priority=0):
    return Process(pid=pid, name=f'P{pid}', priority=priority,
                   burst_time=burst, arrival_time=arrival)


def run_trace(scheduler, limit=1000):
    """逐步运行，记录每个时间单位占用CPU的进程"""
    trace = []
    for _ in range(limit):
        before = scheduler.current_time
        has_work = scheduler.execute_step()
        running = [e['pid'] for e in scheduler.get_events(5)
                   if e['type'] == 'run' and e['timestamp'] == before]
        trace.append(running[0] if running else None)
        if not has_work:
            break
    return trace


def test_round_robin_time_slices():
    s = Scheduler(SchedulingAlgorithm.ROUND_ROBIN, time_quantum=2)
    s.add_process(make(1, 5))
    s.add_process(make(2, 3))

    assert run_trace(s) == [1, 1, 2, 2, 1, 1, 2, 1]
    assert [p.pid for p in s.get_completed_processes()] == [2, 1]


def test_round_robin_never_exceeds_quantum():
    s = Scheduler(SchedulingAlgorithm.ROUND_ROBIN, time_quantum=3)
    for pid, burst in ((1, 7), (2, 4), (3, 9)):
        s.add_process(make(pid, burst))

    trace = run_trace(s)
    streak = 1
    for prev, cur in zip(trace, trace[1:]):
        streak = streak + 1 if cur == prev else 1
        assert streak <= 3


def test_sjf_picks_shortest_remaining():
    s = Scheduler(SchedulingAlgorithm.SJF)
    s.add_process(make(1, 6))
    s.add_process(make(2, 2))
    s.add_process(make(3, 4))

    assert run_trace(s) == [2, 2, 3, 3, 3, 3, 1, 1, 1, 1, 1, 1]


def test_sjf_is_not_preemptive():
    s = Scheduler(SchedulingAlgorithm.SJF)
    s.add_process(make(1, 4))
    s.add_process(make(2, 1, arrival=1))

    assert run_trace(s) == [1, 1, 1, 1, 2]


def test_sjf_ties_keep_arrival_order():
    s = Scheduler(SchedulingAlgorithm.SJF)
    for pid in (1, 2, 3):
        s.add_process(make(pid, 2))
    s.execute_step()

    assert [p.pid for p in s.get_ready_queue()] == [2, 3]
    assert s.get_current_process().pid == 1


def test_priority_order():
    s = Scheduler(SchedulingAlgorithm.PRIORITY)
    s.add_process(make(1, 2, priority=3))
    s.add_process(make(2, 2, priority=1))
    s.add_process(make(3, 2, priority=2))
    s.add_process(make(4, 2, priority=1))

    assert run_trace(s) == [2, 2, 4, 4, 3, 3, 1, 1]


def test_idle_ticks_until_arrival():
    s = Scheduler()
    s.add_process(make(1, 1, arrival=3))

    assert run_trace(s) == [None, None, None, 1]
    p = s.get_completed_processes()[0]
    assert p.completion_time == 4
    assert p.turnaround_time == 1
    assert p.waiting_time == 0


def test_execute_step_without_work():
    s = Scheduler()
    assert s.execute_step() is False
    assert s.current_time == 0


def test_last_unit_reports_no_remaining_work():
    s = Scheduler()
    s.add_process(make(1, 2))
    assert s.execute_step() is True
    assert s.execute_step() is False


def test_duplicate_pid_rejected():
    s = Scheduler()
    assert s.add_process(make(1, 2)) is True
    assert s.add_process(make(1, 3)) is False


def test_metrics():
    s = Scheduler(SchedulingAlgorithm.ROUND_ROBIN, time_quantum=2)
    assert s.get_metrics() == {}

    s.add_process(make(1, 3))
    s.add_process(make(2, 2))
    s.run_complete()

    # P1: 0-2, P2: 2-4, P1: 4-5
    metrics = s.get_metrics()
    assert metrics['avg_turnaround_time'] == pytest.approx((5 + 4) / 2)
    assert metrics['avg_waiting_time'] == pytest.approx((2 + 2) / 2)
    assert metrics['cpu_utilization'] == pytest.approx(100.0)
    assert metrics['throughput'] == pytest.approx(2 / 5)


def test_blocked_current_process_frees_cpu():
    s = Scheduler()
    s.add_process(make(1, 5))
    s.add_process(make(2, 5))
    s.execute_step()
    assert s.get_current_process().pid == 1

    s.process_blocked(1, 'f')
    assert s.get_current_process() is None
    assert [p.pid for p in s.get_waiting_processes()] == [1]
    assert s.find_process(1).state == ProcessState.WAITING

    s.execute_step()
    assert s.get_current_process().pid == 2


def test_blocked_from_ready_and_new():
    s = Scheduler()
    s.add_process(make(1, 5))
    s.add_process(make(2, 5))
    s.add_process(make(3, 5, arrival=10))
    s.execute_step()

    s.process_blocked(2, 'f')
    s.process_blocked(3, 'f')
    assert s.get_ready_queue() == []
    assert s.get_new_processes() == []
    assert sorted(p.pid for p in s.get_waiting_processes()) == [2, 3]


def test_blocked_unknown_pid_is_ignored():
    s = Scheduler()
    s.process_blocked(42, 'f')
    s.process_unblocked(42, 'f')
    assert s.get_waiting_processes() == []
    assert s.get_ready_queue() == []


def test_unblocked_reinserts_by_algorithm():
    s = Scheduler(SchedulingAlgorithm.SJF)
    s.add_process(make(1, 9))
    s.add_process(make(2, 5))
    s.add_process(make(3, 1))
    s.add_process(make(4, 7))
    s.execute_step()            # P3 runs and completes
    s.process_blocked(2, 'f')

    s.process_unblocked(2, 'f')
    assert s.find_process(2).state == ProcessState.READY
    assert [p.pid for p in s.get_ready_queue()] == [2, 4, 1]


def test_process_is_in_exactly_one_container():
    s = Scheduler(SchedulingAlgorithm.ROUND_ROBIN, time_quantum=1)
    for pid in range(1, 5):
        s.add_process(make(pid, 3, arrival=pid))

    for step in range(30):
        if step == 4:
            s.process_blocked(2, 'f')
        if step == 9:
            s.process_unblocked(2, 'f')
        s.execute_step()

        current = [s.get_current_process()] if s.get_current_process() else []
        pids = [p.pid for p in current + s.get_ready_queue() + s.get_waiting_processes()
                + s.get_new_processes() + s.get_completed_processes()]
        assert sorted(pids) == [1, 2, 3, 4]


def test_reset_is_idempotent():
    s = Scheduler()
    s.add_process(make(1, 5))
    s.execute_step()
    s.reset()
    s.reset()

    assert s.current_time == 0
    assert s.get_current_process() is None
    assert s.get_all_processes() == []
    assert s.execute_step() is False


def test_event_emitter_receives_events():
    received = []
    s = Scheduler()
    s.set_event_emitter(received.append)
    s.add_process(make(1, 1))
    s.execute_step()

    assert [e['type'] for e in received] == ['arrive', 'dispatch', 'run', 'complete']


def test_invalid_quantum():
    with pytest.raises(ValueError):
        Scheduler(time_quantum=0)
    with pytest.raises(ValueError):
        Scheduler().set_time_quantum(0)
