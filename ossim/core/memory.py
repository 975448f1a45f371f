# -*- coding: utf-8 -*-
"""
操作系统模拟器 - 内存管理模块
固定数量页框的请求分页，支持 FIFO 和 LRU 页面置换算法
"""

import threading
from collections import deque
from typing import Optional, Dict, List, Any
from dataclasses import dataclass
from enum import Enum

from ..config import FRAME_COUNT, MAX_SWAP_LOG


class PageReplacementAlgorithm(Enum):
    """页面置换算法"""
    FIFO = 'FIFO'
    LRU = 'LRU'


@dataclass
class PageFrame:
    """
    页框结构
    记录页框中驻留的页号、所属进程以及装入/访问时间
    """
    frame_id: int                 # 页框号
    page_number: int = -1         # 驻留页号（-1表示空）
    process_id: int = -1          # 所属进程ID（-1表示无主）
    valid: bool = False           # 是否有效
    load_time: int = 0            # 装入时间（访问计数）
    last_access_time: int = 0     # 最后访问时间（访问计数）

    def load(self, page_number: int, process_id: int, time: int):
        """装入页面"""
        self.page_number = page_number
        self.process_id = process_id
        self.valid = True
        self.load_time = time
        self.last_access_time = time

    def clear(self):
        """使页框失效"""
        self.valid = False
        self.page_number = -1
        self.process_id = -1


class MemoryManager:
    """
    内存管理器
    管理固定大小的页框池，实现请求分页与页面置换
    """

    def __init__(self, frame_count: int = FRAME_COUNT,
                 algorithm: PageReplacementAlgorithm = PageReplacementAlgorithm.LRU):
        """
        初始化内存管理器

        Args:
            frame_count: 页框数量
            algorithm: 页面置换算法
        """
        if frame_count < 1:
            raise ValueError('frame_count 必须 >= 1')

        self.frame_count = frame_count
        self.algorithm = algorithm
        self.lock = threading.RLock()

        # 页框在构造时一次性创建，之后只复用
        self.frames: List[PageFrame] = [
            PageFrame(frame_id=i) for i in range(frame_count)
        ]

        # FIFO 装入顺序（页框号）
        self.fifo_queue: deque = deque()

        # 访问计数器，作为逻辑时间
        self.access_counter = 0
        self.page_faults = 0
        self.page_hits = 0

        # 置换日志（用于可视化）
        self.swap_log: List[Dict[str, Any]] = []

    def access_page(self, process_id: int, page_number: int) -> bool:
        """
        访问进程的某个页面

        Args:
            process_id: 进程ID
            page_number: 页号

        Returns:
            是否发生缺页
        """
        with self.lock:
            self.access_counter += 1

            for frame in self.frames:
                if (frame.valid and frame.process_id == process_id
                        and frame.page_number == page_number):
                    frame.last_access_time = self.access_counter
                    self.page_hits += 1
                    self._log_swap('HIT', frame.frame_id, page_number, process_id)
                    return False

            self.page_faults += 1
            self._load_page(process_id, page_number)
            return True

    def _load_page(self, process_id: int, page_number: int):
        """装入页面，必要时置换"""
        frame_id = self._find_free_frame()

        if frame_id is None:
            frame_id = self._select_victim()
            victim = self.frames[frame_id]
            self._log_swap('EVICT', frame_id, victim.page_number, victim.process_id)
            victim.clear()

        self.frames[frame_id].load(page_number, process_id, self.access_counter)
        if self.algorithm == PageReplacementAlgorithm.FIFO:
            self.fifo_queue.append(frame_id)
        self._log_swap('LOAD', frame_id, page_number, process_id)

    def _find_free_frame(self) -> Optional[int]:
        """查找空闲页框"""
        for frame in self.frames:
            if not frame.valid:
                return frame.frame_id
        return None

    def _select_victim(self) -> int:
        if self.algorithm == PageReplacementAlgorithm.FIFO:
            return self._find_victim_fifo()
        return self._find_victim_lru()

    def _find_victim_fifo(self) -> int:
        """
        使用FIFO算法选择牺牲页框
        跳过已被释放的过期表项
        """
        while self.fifo_queue:
            candidate = self.fifo_queue.popleft()
            if self.frames[candidate].valid:
                return candidate
        return 0

    def _find_victim_lru(self) -> int:
        """
        使用LRU算法选择牺牲页框
        最后访问时间最小者；相同时取页框号最小者
        """
        victim = 0
        oldest_time = float('inf')

        for frame in self.frames:
            if frame.valid and frame.last_access_time < oldest_time:
                oldest_time = frame.last_access_time
                victim = frame.frame_id

        return victim

    def free_process_pages(self, process_id: int):
        """释放指定进程占用的所有页框"""
        with self.lock:
            freed = set()
            for frame in self.frames:
                if frame.valid and frame.process_id == process_id:
                    self._log_swap('FREE', frame.frame_id, frame.page_number, process_id)
                    frame.clear()
                    freed.add(frame.frame_id)

            if freed:
                self.fifo_queue = deque(f for f in self.fifo_queue if f not in freed)

    def get_memory_state(self) -> List[Dict[str, Any]]:
        """获取页框状态（按页框号排序）"""
        with self.lock:
            return [
                {
                    'frame_id': frame.frame_id,
                    'page_number': frame.page_number,
                    'process_id': frame.process_id,
                    'valid': frame.valid,
                    'load_time': frame.load_time,
                    'last_access_time': frame.last_access_time,
                }
                for frame in self.frames
            ]

    def get_page_fault_rate(self) -> float:
        total = self.page_faults + self.page_hits
        return (self.page_faults * 100.0 / total) if total > 0 else 0.0

    def get_page_hit_rate(self) -> float:
        total = self.page_faults + self.page_hits
        return (self.page_hits * 100.0 / total) if total > 0 else 0.0

    def get_metrics(self) -> Dict[str, Any]:
        """获取统计信息"""
        with self.lock:
            used = sum(1 for f in self.frames if f.valid)
            return {
                'page_faults': self.page_faults,
                'page_hits': self.page_hits,
                'page_fault_rate': self.get_page_fault_rate(),
                'page_hit_rate': self.get_page_hit_rate(),
                'frames_used': used,
                'frames_free': self.frame_count - used,
                'total_frames': self.frame_count,
                'algorithm': self.algorithm.name,
            }

    def _log_swap(self, op_type: str, frame_id: int, page_number: int, process_id: int):
        """记录置换日志"""
        self.swap_log.append({
            'time': self.access_counter,
            'type': op_type,
            'frame_id': frame_id,
            'page_number': page_number,
            'process_id': process_id,
        })
        # 只保留最近的日志
        if len(self.swap_log) > MAX_SWAP_LOG:
            self.swap_log = self.swap_log[-MAX_SWAP_LOG:]

    def get_swap_log(self) -> List[Dict[str, Any]]:
        """获取置换日志"""
        with self.lock:
            return self.swap_log.copy()

    def reset(self):
        """重置内存管理器"""
        with self.lock:
            for frame in self.frames:
                frame.clear()
            self.fifo_queue.clear()
            self.swap_log.clear()
            self.access_counter = 0
            self.page_faults = 0
            self.page_hits = 0
