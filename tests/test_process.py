# -*- coding: utf-8 -*-
import pytest

from ossim.core.process import Process, ProcessState


def test_new_process_defaults():
    p = Process(pid=1, name='P1', burst_time=5, arrival_time=2)
    assert p.state == ProcessState.NEW
    assert p.remaining_time == 5
    assert p.quantum_used == 0


def test_execute_counts_down_to_terminated():
    p = Process(pid=1, name='P1', burst_time=3)
    history = []
    for _ in range(5):
        p.execute(1)
        history.append(p.remaining_time)

    assert history == [2, 1, 0, 0, 0]
    assert p.state == ProcessState.TERMINATED
    assert p.is_completed()


def test_execute_never_goes_negative():
    p = Process(pid=1, name='P1', burst_time=2)
    assert p.execute(10) == 2
    assert p.remaining_time == 0
    assert p.quantum_used == 2


def test_calculate_metrics_only_when_terminated():
    p = Process(pid=1, name='P1', burst_time=4, arrival_time=1)
    p.calculate_metrics(10)
    assert p.completion_time == 0

    p.execute(4)
    p.calculate_metrics(10)
    assert p.completion_time == 10
    assert p.turnaround_time == 9
    assert p.waiting_time == 5


def test_to_dict():
    p = Process(pid=7, name='X', priority=2, burst_time=3, required_pages=[1, 2], required_files=['f'])
    d = p.to_dict()
    assert d['pid'] == 7
    assert d['state'] == 'NEW'
    assert d['required_pages'] == [1, 2]
    assert d['required_files'] == ['f']


def test_remaining_time_defaults_to_burst_time():
    assert Process(pid=1, name='P1', burst_time=0).remaining_time == 0
    assert Process(pid=1, name='P1', burst_time=6, remaining_time=2).remaining_time == 2


def test_negative_times_rejected():
    with pytest.raises(ValueError):
        Process(pid=1, name='P1', burst_time=-1)
    with pytest.raises(ValueError):
        Process(pid=1, name='P1', burst_time=3, remaining_time=-2)
