# -*- coding: utf-8 -*-
"""
操作系统模拟器 - 进程调度模块

要点：
1) 逻辑时钟：每调用一次 execute_step 推进一个时间单位，不依赖真实时间；
2) 三种算法：时间片轮转、短作业优先、优先级；SJF 与优先级为非抢占式，
   只在没有运行进程时才重新选择；
3) 实现 FileSystemListener，文件锁冲突时把进程移入/移出等待集合。
"""

import threading
from typing import Optional, Dict, List, Any, Callable
from dataclasses import dataclass
from enum import Enum

from ..config import TIME_QUANTUM, MAX_SCHEDULE_EVENTS
from .listener import FileSystemListener
from .process import Process, ProcessState


class SchedulingAlgorithm(Enum):
    ROUND_ROBIN = 'ROUND_ROBIN'
    SJF = 'SJF'
    PRIORITY = 'PRIORITY'


@dataclass
class ScheduleEvent:
    timestamp: int
    event_type: str
    pid: int
    details: str = ''
    remaining_time: Optional[int] = None


class Scheduler(FileSystemListener):
    """多算法进程调度器（逻辑时钟驱动）"""

    def __init__(self, algorithm: SchedulingAlgorithm = SchedulingAlgorithm.ROUND_ROBIN,
                 time_quantum: int = TIME_QUANTUM):
        if time_quantum < 1:
            raise ValueError('time_quantum 必须 >= 1')

        self.algorithm = algorithm
        self.time_quantum = time_quantum

        self.lock = threading.RLock()

        # 每个进程任一时刻只属于下列容器之一
        self.new_processes: List[Process] = []
        self.ready_queue: List[Process] = []
        self.waiting_processes: Dict[int, Process] = {}
        self.completed_processes: List[Process] = []
        self.current_process: Optional[Process] = None
        # 最近一步中实际占用CPU的进程
        self.last_executed: Optional[Process] = None

        self.current_time = 0

        self.events: List[ScheduleEvent] = []
        self.max_events = MAX_SCHEDULE_EVENTS
        self.event_emitter: Optional[Callable[[Dict[str, Any]], None]] = None

        self.stats = {
            'total_schedules': 0,
            'context_switches': 0,
            'preemptions': 0,
            'idle_time': 0,
        }

    # ------------------------- 外部接口 -------------------------
    def set_event_emitter(self, emitter: Callable[[Dict[str, Any]], None]):
        self.event_emitter = emitter

    def set_algorithm(self, algorithm: SchedulingAlgorithm):
        """切换调度算法；已在就绪队列中的进程保持原有顺序"""
        with self.lock:
            self.algorithm = algorithm

    def set_time_quantum(self, quantum: int):
        if quantum < 1:
            raise ValueError('time_quantum 必须 >= 1')
        with self.lock:
            self.time_quantum = quantum

    def add_process(self, process: Process) -> bool:
        """
        提交新进程（NEW 状态），到达时间到后进入就绪队列

        Returns:
            是否加入成功；pid 已存在时返回 False
        """
        with self.lock:
            if self.find_process(process.pid) is not None:
                return False
            process.state = ProcessState.NEW
            self.new_processes.append(process)
            return True

    def execute_step(self) -> bool:
        """
        推进一个时间单位

        Returns:
            是否仍有未完成的工作（运行、待到达、就绪或等待中的进程）
        """
        with self.lock:
            self.last_executed = None
            self._update_ready_queue()

            if self.current_process is None:
                self._dispatch_next()

            if self.current_process is not None:
                self._run_current()
            elif self.new_processes or self.waiting_processes:
                # CPU 空闲，但仍有进程未到达或在等待
                self.current_time += 1
                self.stats['idle_time'] += 1
                self._log_event('idle', -1, 'CPU 空闲')

            return self.has_work()

    def has_work(self) -> bool:
        with self.lock:
            return bool(self.current_process is not None or self.new_processes
                        or self.ready_queue or self.waiting_processes)

    def run_complete(self, max_steps: Optional[int] = None) -> int:
        """一直运行到没有工作为止，返回执行的步数"""
        steps = 0
        while max_steps is None or steps < max_steps:
            steps += 1
            if not self.execute_step():
                break
        return steps

    def find_process(self, pid: int) -> Optional[Process]:
        """在所有容器中查找进程"""
        with self.lock:
            if self.current_process is not None and self.current_process.pid == pid:
                return self.current_process
            if pid in self.waiting_processes:
                return self.waiting_processes[pid]
            for container in (self.ready_queue, self.new_processes, self.completed_processes):
                for p in container:
                    if p.pid == pid:
                        return p
            return None

    def get_all_processes(self) -> List[Process]:
        with self.lock:
            result = []
            if self.current_process is not None:
                result.append(self.current_process)
            result.extend(self.ready_queue)
            result.extend(self.waiting_processes.values())
            result.extend(self.new_processes)
            result.extend(self.completed_processes)
            return sorted(result, key=lambda p: p.pid)

    def get_current_process(self) -> Optional[Process]:
        with self.lock:
            return self.current_process

    def get_last_executed(self) -> Optional[Process]:
        """最近一步中执行过的进程（之后可能已被抢占或已完成）"""
        with self.lock:
            return self.last_executed

    def get_ready_queue(self) -> List[Process]:
        with self.lock:
            return list(self.ready_queue)

    def get_waiting_processes(self) -> List[Process]:
        with self.lock:
            return list(self.waiting_processes.values())

    def get_completed_processes(self) -> List[Process]:
        with self.lock:
            return list(self.completed_processes)

    def get_new_processes(self) -> List[Process]:
        with self.lock:
            return list(self.new_processes)

    def get_metrics(self) -> Dict[str, float]:
        """
        已完成进程的平均等待时间、平均周转时间、CPU 利用率和吞吐量
        没有完成的进程时返回空字典
        """
        with self.lock:
            completed = self.completed_processes
            if not completed:
                return {}

            count = len(completed)
            total_burst = sum(p.burst_time for p in completed)
            return {
                'avg_waiting_time': sum(p.waiting_time for p in completed) / count,
                'avg_turnaround_time': sum(p.turnaround_time for p in completed) / count,
                'cpu_utilization': (total_burst * 100.0 / self.current_time)
                if self.current_time > 0 else 0.0,
                'throughput': count / max(1, self.current_time),
            }

    def get_stats(self) -> Dict[str, Any]:
        with self.lock:
            return {
                **self.stats,
                'algorithm': self.algorithm.name,
                'time_quantum': self.time_quantum,
                'current_time': self.current_time,
                'current_process': self.current_process.pid if self.current_process else None,
                'ready_queue_size': len(self.ready_queue),
                'waiting_size': len(self.waiting_processes),
                'completed': len(self.completed_processes),
            }

    def get_events(self, count: int = 20) -> List[Dict[str, Any]]:
        with self.lock:
            return [
                {
                    'timestamp': e.timestamp,
                    'type': e.event_type,
                    'pid': e.pid,
                    'details': e.details,
                    'remaining_time': e.remaining_time,
                }
                for e in self.events[-count:]
            ]

    def clear_events(self):
        with self.lock:
            self.events.clear()

    def get_gantt_data(self) -> List[Dict[str, Any]]:
        """甘特图数据：每个时间单位由哪个进程占用 CPU"""
        with self.lock:
            return [
                {'pid': e.pid, 'time': e.timestamp}
                for e in self.events if e.event_type == 'run'
            ]

    def reset(self):
        """清空所有队列与时钟"""
        with self.lock:
            self.new_processes.clear()
            self.ready_queue.clear()
            self.waiting_processes.clear()
            self.completed_processes.clear()
            self.current_process = None
            self.last_executed = None
            self.current_time = 0
            self.events.clear()
            for key in self.stats:
                self.stats[key] = 0

    # ------------------------- 文件系统通知 -------------------------
    def process_blocked(self, pid: int, file_name: str):
        with self.lock:
            if self.current_process is not None and self.current_process.pid == pid:
                process = self.current_process
                self.current_process = None
                self.stats['context_switches'] += 1
            else:
                process = self._take(self.ready_queue, pid) or self._take(self.new_processes, pid)

            if process is None:
                return

            process.state = ProcessState.WAITING
            self.waiting_processes[pid] = process
            self._log_event('block', pid, f'进程 {pid} 等待文件 {file_name}',
                            process.remaining_time)

    def process_unblocked(self, pid: int, file_name: str):
        with self.lock:
            process = self.waiting_processes.pop(pid, None)
            if process is None:
                return
            process.state = ProcessState.READY
            self._add_to_ready_queue(process)
            self._log_event('unblock', pid, f'进程 {pid} 获得文件 {file_name}',
                            process.remaining_time)

    # ------------------------- 内部逻辑 -------------------------
    def _update_ready_queue(self):
        """到达时间已到的 NEW 进程进入就绪队列"""
        arrived = [p for p in self.new_processes if p.arrival_time <= self.current_time]
        if not arrived:
            return
        self.new_processes = [p for p in self.new_processes if p.arrival_time > self.current_time]
        for process in arrived:
            process.state = ProcessState.READY
            self._add_to_ready_queue(process)
            self._log_event('arrive', process.pid, f'进程 {process.pid} 到达')

    def _add_to_ready_queue(self, process: Process):
        """按当前算法插入就绪队列（排序稳定，相同键保持原顺序）"""
        self.ready_queue.append(process)
        if self.algorithm == SchedulingAlgorithm.SJF:
            self.ready_queue.sort(key=lambda p: p.remaining_time)
        elif self.algorithm == SchedulingAlgorithm.PRIORITY:
            self.ready_queue.sort(key=lambda p: p.priority)

    def _dispatch_next(self):
        if not self.ready_queue:
            return
        process = self.ready_queue.pop(0)
        process.state = ProcessState.RUNNING
        process.quantum_used = 0
        self.current_process = process
        self.stats['total_schedules'] += 1
        self._log_event('dispatch', process.pid, f'调度进程 {process.pid}',
                        process.remaining_time)

    def _run_current(self):
        process = self.current_process
        process.execute(1)
        self.last_executed = process
        self._log_event('run', process.pid, remaining_time=process.remaining_time)
        self.current_time += 1

        if process.is_completed():
            process.state = ProcessState.TERMINATED
            process.calculate_metrics(self.current_time)
            self.completed_processes.append(process)
            self.current_process = None
            self._log_event('complete', process.pid, f'进程 {process.pid} 完成', 0)
        elif (self.algorithm == SchedulingAlgorithm.ROUND_ROBIN
              and process.quantum_used >= self.time_quantum):
            process.state = ProcessState.READY
            self.current_process = None
            self._add_to_ready_queue(process)
            self.stats['preemptions'] += 1
            self.stats['context_switches'] += 1
            self._log_event('preempt', process.pid, f'进程 {process.pid} 时间片用完',
                            process.remaining_time)

    @staticmethod
    def _take(container: List[Process], pid: int) -> Optional[Process]:
        for i, p in enumerate(container):
            if p.pid == pid:
                return container.pop(i)
        return None

    def _log_event(self, event_type: str, pid: int, details: str = '',
                   remaining_time: Optional[int] = None):
        event = ScheduleEvent(self.current_time, event_type, pid, details, remaining_time)
        self.events.append(event)
        if len(self.events) > self.max_events:
            self.events = self.events[-self.max_events:]

        if self.event_emitter:
            payload = {
                'timestamp': event.timestamp,
                'type': event_type,
                'pid': pid,
                'details': details,
                'remaining_time': remaining_time,
            }
            try:
                self.event_emitter(payload)
            except Exception:
                pass
