# -*- coding: utf-8 -*-
"""
操作系统模拟器 - 文件系统监听接口
文件系统通过该接口通知调度器进程的阻塞与唤醒，而不依赖调度器本身
"""

from abc import ABC, abstractmethod


class FileSystemListener(ABC):
    """文件系统阻塞/唤醒通知接口"""

    @abstractmethod
    def process_blocked(self, pid: int, file_name: str):
        """进程因文件锁冲突进入等待队列"""

    @abstractmethod
    def process_unblocked(self, pid: int, file_name: str):
        """进程从等待队列中获得文件锁，可以回到就绪状态"""
