# -*- coding: utf-8 -*-
"""
操作系统模拟器 - 核心模块
"""

from .process import Process, ProcessState
from .listener import FileSystemListener
from .memory import MemoryManager, PageReplacementAlgorithm
from .filesystem import FileSystem, FileAccessType
from .scheduler import Scheduler, SchedulingAlgorithm
from .simulator import Simulator, StepResult

__all__ = [
    'Process',
    'ProcessState',
    'FileSystemListener',
    'MemoryManager',
    'PageReplacementAlgorithm',
    'FileSystem',
    'FileAccessType',
    'Scheduler',
    'SchedulingAlgorithm',
    'Simulator',
    'StepResult'
]
