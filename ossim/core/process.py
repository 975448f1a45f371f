# -*- coding: utf-8 -*-
"""
操作系统模拟器 - 进程模块
进程控制块 (PCB) 及其生命周期状态
"""

from typing import Optional, Dict, List, Any
from dataclasses import dataclass, field
from enum import Enum


class ProcessState(Enum):
    """进程状态"""
    NEW = 0         # 新建
    READY = 1       # 就绪
    RUNNING = 2     # 运行
    WAITING = 3     # 等待（被文件锁阻塞）
    TERMINATED = 4  # 终止


@dataclass
class Process:
    """
    进程控制块 (PCB)
    记录进程的资源需求（CPU 区间、页面、文件）和统计信息
    """
    pid: int                              # 进程ID
    name: str                             # 进程名称
    priority: int = 0                     # 优先级（数值越小越优先）
    burst_time: int = 1                   # 需要的CPU时间
    arrival_time: int = 0                 # 到达时间
    required_pages: List[int] = field(default_factory=list)  # 需要访问的页号
    required_files: List[str] = field(default_factory=list)  # 需要访问的文件名

    # 运行时状态
    state: ProcessState = ProcessState.NEW
    remaining_time: Optional[int] = None  # 剩余CPU时间（None 表示等于 burst_time）
    quantum_used: int = 0                 # 本次调度以来已执行的时间

    # 统计信息
    waiting_time: int = 0
    turnaround_time: int = 0
    completion_time: int = 0

    def __post_init__(self):
        if self.burst_time < 0:
            raise ValueError('burst_time 不能为负数')
        if self.remaining_time is None:
            self.remaining_time = self.burst_time
        elif self.remaining_time < 0:
            raise ValueError('remaining_time 不能为负数')
        self.required_pages = list(self.required_pages)
        self.required_files = list(self.required_files)

    def execute(self, units: int) -> int:
        """
        执行进程若干时间单位

        Args:
            units: 请求执行的时间

        Returns:
            实际执行的时间
        """
        executed = min(max(0, units), self.remaining_time)
        self.remaining_time -= executed
        self.quantum_used += executed

        if self.remaining_time == 0:
            self.state = ProcessState.TERMINATED

        return executed

    def is_completed(self) -> bool:
        return self.remaining_time == 0

    def calculate_metrics(self, now: int):
        """进程终止后计算完成时间、周转时间和等待时间"""
        if self.state != ProcessState.TERMINATED:
            return
        self.completion_time = now
        self.turnaround_time = self.completion_time - self.arrival_time
        self.waiting_time = self.turnaround_time - self.burst_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            'pid': self.pid,
            'name': self.name,
            'priority': self.priority,
            'burst_time': self.burst_time,
            'remaining_time': self.remaining_time,
            'arrival_time': self.arrival_time,
            'state': self.state.name,
            'quantum_used': self.quantum_used,
            'waiting_time': self.waiting_time,
            'turnaround_time': self.turnaround_time,
            'completion_time': self.completion_time,
            'required_pages': list(self.required_pages),
            'required_files': list(self.required_files),
        }
