# -*- coding: utf-8 -*-
"""
操作系统模拟器 - 组装模块
创建调度器、内存管理器和文件系统，并在每一步中协调三者
"""

import logging
import threading
from typing import Optional, Dict, List, Any
from dataclasses import dataclass, field

from ..config import (TIME_QUANTUM, FRAME_COUNT, DEFAULT_SCHEDULING,
                      DEFAULT_REPLACEMENT, DEFAULT_ACCESS_TYPE, MAX_RUN_STEPS)
from .filesystem import FileSystem, FileAccessType
from .memory import MemoryManager, PageReplacementAlgorithm
from .process import Process, ProcessState
from .scheduler import Scheduler, SchedulingAlgorithm

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """一步模拟的结果"""
    time: int
    has_work: bool
    executed_pid: Optional[int] = None
    page_faults: List[int] = field(default_factory=list)
    blocked_files: List[str] = field(default_factory=list)
    completed: List[int] = field(default_factory=list)
    deadlock: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'time': self.time,
            'has_work': self.has_work,
            'executed_pid': self.executed_pid,
            'page_faults': list(self.page_faults),
            'blocked_files': list(self.blocked_files),
            'completed': list(self.completed),
            'deadlock': self.deadlock,
        }


class Simulator:
    """
    模拟器
    每一步：调度器推进一个时间单位，然后本步执行的进程依次访问所需页面和文件
    """

    def __init__(self,
                 algorithm: SchedulingAlgorithm = SchedulingAlgorithm[DEFAULT_SCHEDULING],
                 time_quantum: int = TIME_QUANTUM,
                 frame_count: int = FRAME_COUNT,
                 replacement: PageReplacementAlgorithm = PageReplacementAlgorithm[DEFAULT_REPLACEMENT],
                 access_type: FileAccessType = FileAccessType[DEFAULT_ACCESS_TYPE]):
        self.lock = threading.RLock()
        self.access_type = access_type

        self.scheduler = Scheduler(algorithm, time_quantum)
        self.memory = MemoryManager(frame_count, replacement)
        self.filesystem = FileSystem()
        self._attach()

    def _attach(self):
        """注册监听者并让文件系统使用调度器的逻辑时钟"""
        self.filesystem.set_listener(self.scheduler)
        self.filesystem.set_clock(lambda: self.scheduler.current_time)

    def add_process(self, process: Process) -> bool:
        return self.scheduler.add_process(process)

    def create_file(self, name: str, content: str = '') -> bool:
        return self.filesystem.create_file(name, content)

    def step(self) -> StepResult:
        """执行一步模拟"""
        with self.lock:
            completed_before = len(self.scheduler.get_completed_processes())
            has_work = self.scheduler.execute_step()
            result = StepResult(time=self.scheduler.current_time, has_work=has_work)

            # 本步完成的进程释放文件锁和页框
            for process in self.scheduler.get_completed_processes()[completed_before:]:
                released = self.filesystem.release_all(process.pid)
                self.memory.free_process_pages(process.pid)
                result.completed.append(process.pid)
                logger.debug('P%d 完成，释放文件 %s', process.pid, released)

            executed = self.scheduler.get_last_executed()
            if executed is not None:
                result.executed_pid = executed.pid

            # 已完成的进程不再申请资源
            if executed is not None and executed.state != ProcessState.TERMINATED:
                # 先访问页面，再访问文件
                for page in executed.required_pages:
                    if self.memory.access_page(executed.pid, page):
                        result.page_faults.append(page)

                for file_name in executed.required_files:
                    if not self.filesystem.request_access(executed.pid, file_name,
                                                          self.access_type):
                        result.blocked_files.append(file_name)
                        if executed.state == ProcessState.WAITING:
                            break

            result.has_work = self.scheduler.has_work()
            result.deadlock = self.detect_deadlock()
            if result.deadlock:
                logger.warning('t=%d 所有剩余进程都在等待文件，疑似死锁', result.time)
            return result

    def run(self, max_steps: int = MAX_RUN_STEPS) -> List[StepResult]:
        """运行直到没有工作、出现疑似死锁或达到最大步数"""
        results = []
        with self.lock:
            for _ in range(max_steps):
                result = self.step()
                results.append(result)
                if not result.has_work or result.deadlock:
                    break
        return results

    def detect_deadlock(self) -> bool:
        """没有运行进程、就绪队列为空、但有进程在等待"""
        return (self.scheduler.get_current_process() is None
                and not self.scheduler.get_ready_queue()
                and bool(self.scheduler.get_waiting_processes()))

    def reset_all(self):
        """按固定顺序重置：文件系统、调度器、内存，然后重新注册监听者"""
        with self.lock:
            self.filesystem.reset()
            self.scheduler.reset()
            self.memory.reset()
            self._attach()
            logger.info('模拟器已重置')

    def configure(self, algorithm: Optional[SchedulingAlgorithm] = None,
                  time_quantum: Optional[int] = None,
                  frame_count: Optional[int] = None,
                  replacement: Optional[PageReplacementAlgorithm] = None,
                  access_type: Optional[FileAccessType] = None):
        """
        修改配置并重置整个模拟
        参数非法时抛出 ValueError，此时配置与进程状态均保持不变
        """
        with self.lock:
            if time_quantum is not None and time_quantum < 1:
                raise ValueError('time_quantum 必须 >= 1')

            # 先构造新的内存管理器，成功后再修改任何状态
            memory = None
            if frame_count is not None or replacement is not None:
                memory = MemoryManager(
                    frame_count if frame_count is not None else self.memory.frame_count,
                    replacement or self.memory.algorithm)

            if time_quantum is not None:
                self.scheduler.set_time_quantum(time_quantum)
            if algorithm is not None:
                self.scheduler.set_algorithm(algorithm)
            if memory is not None:
                self.memory = memory
            if access_type is not None:
                self.access_type = access_type
            self.reset_all()

    def snapshot(self) -> Dict[str, Any]:
        """只读的整体状态快照"""
        with self.lock:
            current = self.scheduler.get_current_process()
            return {
                'time': self.scheduler.current_time,
                'current_process': current.to_dict() if current else None,
                'ready_queue': [p.to_dict() for p in self.scheduler.get_ready_queue()],
                'waiting': [p.to_dict() for p in self.scheduler.get_waiting_processes()],
                'completed': [p.to_dict() for p in self.scheduler.get_completed_processes()],
                'new': [p.to_dict() for p in self.scheduler.get_new_processes()],
                'frames': self.memory.get_memory_state(),
                'files': self.filesystem.get_all_files(),
                'metrics': {
                    'scheduler': self.scheduler.get_metrics(),
                    'memory': self.memory.get_metrics(),
                    'filesystem': self.filesystem.get_metrics(),
                },
                'deadlock': self.detect_deadlock(),
            }
