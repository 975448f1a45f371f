# -*- coding: utf-8 -*-
"""
操作系统模拟器 - 文件系统模块
模拟文件的互斥访问：每个文件一把锁、一个FIFO等待队列和访问日志
通过 FileSystemListener 通知进程的阻塞与唤醒
"""

import threading
from collections import deque
from typing import Optional, Dict, List, Any, Callable
from dataclasses import dataclass
from enum import Enum

from .listener import FileSystemListener


class FileAccessType(Enum):
    """文件访问类型"""
    READ = 'READ'
    WRITE = 'WRITE'
    NONE = 'NONE'


@dataclass
class SimulatedFile:
    """模拟文件"""
    name: str
    content: str = ''
    locked: bool = False
    locked_by: Optional[int] = None       # 持有锁的进程ID
    current_access_type: FileAccessType = FileAccessType.NONE
    read_count: int = 0
    write_count: int = 0

    def acquire(self, pid: int, access_type: FileAccessType):
        """加锁并累计读写次数"""
        self.locked = True
        self.locked_by = pid
        self.current_access_type = access_type
        if access_type == FileAccessType.READ:
            self.read_count += 1
        else:
            self.write_count += 1

    def unlock(self):
        self.locked = False
        self.locked_by = None
        self.current_access_type = FileAccessType.NONE


@dataclass
class FileRequest:
    """
    文件访问请求
    无法立即满足时创建，在等待队列中直到被授予
    """
    process_id: int
    file_name: str
    access_type: FileAccessType
    request_time: int
    granted_time: Optional[int] = None
    granted: bool = False

    def grant(self, granted_time: int):
        self.granted = True
        self.granted_time = granted_time

    @property
    def wait_time(self) -> int:
        return (self.granted_time - self.request_time) if self.granted else 0


@dataclass(frozen=True)
class FileAccessLog:
    """文件访问日志项（不可变）"""
    process_id: int
    file_name: str
    access_type: FileAccessType
    timestamp: int
    success: bool
    message: str

    def __str__(self):
        status = 'SUCCESS' if self.success else 'FAILED'
        return (f'[{self.timestamp}] P{self.process_id} {self.access_type.name} '
                f'{self.file_name} - {status} ({self.message})')


class FileSystem:
    """
    文件系统类
    管理模拟文件的锁、等待队列和访问日志
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        """
        初始化文件系统

        Args:
            clock: 返回当前逻辑时间的函数，由组装方提供
        """
        self.lock = threading.RLock()

        self.files: Dict[str, SimulatedFile] = {}
        self.waiting_queues: Dict[str, deque] = {}
        self.access_log: List[FileAccessLog] = []
        self.granted_requests: List[FileRequest] = []
        self.conflict_count = 0

        self.listener: Optional[FileSystemListener] = None
        self.clock: Callable[[], int] = clock or (lambda: 0)

    def set_listener(self, listener: Optional[FileSystemListener]):
        """设置阻塞/唤醒通知的监听者（调度器）"""
        with self.lock:
            self.listener = listener

    def set_clock(self, clock: Callable[[], int]):
        with self.lock:
            self.clock = clock

    def create_file(self, name: str, content: str = '') -> bool:
        """
        创建文件，同名文件已存在时不做任何操作

        Returns:
            是否新建了文件
        """
        with self.lock:
            if name in self.files:
                return False
            self.files[name] = SimulatedFile(name=name, content=content)
            self.waiting_queues[name] = deque()
            return True

    def request_access(self, pid: int, file_name: str,
                       access_type: FileAccessType = FileAccessType.READ) -> bool:
        """
        申请文件访问权

        Args:
            pid: 进程ID
            file_name: 文件名
            access_type: 访问类型

        Returns:
            是否立即获得访问权；被阻塞时会通知监听者
        """
        with self.lock:
            now = self.clock()

            file = self.files.get(file_name)
            if file is None:
                self._log_access(pid, file_name, access_type, now, False, '文件不存在')
                return False

            if not file.locked:
                file.acquire(pid, access_type)
                self._log_access(pid, file_name, access_type, now, True, '立即获得访问权')
                return True

            # 已持有锁，重复申请直接成功
            if file.locked_by == pid:
                return True

            queue = self.waiting_queues[file_name]
            if any(r.process_id == pid for r in queue):
                return False

            self.conflict_count += 1
            queue.append(FileRequest(pid, file_name, access_type, now))
            self._log_access(pid, file_name, access_type, now, False,
                             f'被 P{file.locked_by} 阻塞，加入等待队列')

            if self.listener is not None:
                self.listener.process_blocked(pid, file_name)

            return False

    def release_access(self, pid: int, file_name: str):
        """释放文件访问权，并把锁交给等待队列中的下一个进程"""
        with self.lock:
            file = self.files.get(file_name)
            if file is None or not file.locked or file.locked_by != pid:
                return

            prev_type = file.current_access_type
            file.unlock()
            self._log_access(pid, file_name, prev_type, self.clock(), True, '释放文件')

            self._process_waiting_queue(file_name)

    def release_all(self, pid: int) -> List[str]:
        """
        释放进程持有的所有文件锁（进程终止时使用）

        Returns:
            被释放的文件名列表
        """
        with self.lock:
            held = [name for name, f in self.files.items()
                    if f.locked and f.locked_by == pid]
            for name in held:
                self.release_access(pid, name)
            return held

    def _process_waiting_queue(self, file_name: str):
        """处理等待队列，队首请求获得锁"""
        queue = self.waiting_queues.get(file_name)
        if not queue:
            return

        request = queue.popleft()
        now = self.clock()

        file = self.files[file_name]
        file.acquire(request.process_id, request.access_type)
        request.grant(now)
        self.granted_requests.append(request)

        self._log_access(request.process_id, file_name, request.access_type, now, True,
                         f'从等待队列获得访问权（等待 {request.wait_time} 个时间单位）')

        if self.listener is not None:
            self.listener.process_unblocked(request.process_id, file_name)

    def read_file(self, pid: int, file_name: str) -> Optional[str]:
        """
        读取文件内容，只有持锁进程可读

        Returns:
            文件内容；无访问权时返回 None
        """
        with self.lock:
            file = self.files.get(file_name)
            if file is None:
                self._log_access(pid, file_name, FileAccessType.READ, self.clock(),
                                 False, '文件不存在')
                return None
            if file.locked and file.locked_by == pid:
                return file.content
            return None

    def write_file(self, pid: int, file_name: str, content: str) -> bool:
        """写入文件内容，只有以 WRITE 方式持锁的进程可写"""
        with self.lock:
            file = self.files.get(file_name)
            if file is None:
                self._log_access(pid, file_name, FileAccessType.WRITE, self.clock(),
                                 False, '文件不存在')
                return False
            if (file.locked and file.locked_by == pid
                    and file.current_access_type == FileAccessType.WRITE):
                file.content = content
                return True
            return False

    def _log_access(self, pid: int, file_name: str, access_type: FileAccessType,
                    timestamp: int, success: bool, message: str):
        self.access_log.append(
            FileAccessLog(pid, file_name, access_type, timestamp, success, message))

    def get_metrics(self) -> Dict[str, Any]:
        """获取文件系统统计信息"""
        with self.lock:
            total = len(self.access_log)
            successful = sum(1 for entry in self.access_log if entry.success)
            return {
                'total_files': len(self.files),
                'total_accesses': total,
                'successful_accesses': successful,
                'conflicts': self.conflict_count,
                'success_rate': (successful * 100.0 / total) if total > 0 else 0.0,
            }

    def get_file(self, name: str) -> Optional[SimulatedFile]:
        with self.lock:
            return self.files.get(name)

    def get_all_files(self) -> List[Dict[str, Any]]:
        """获取所有文件状态（用于可视化）"""
        with self.lock:
            return [
                {
                    'name': f.name,
                    'locked': f.locked,
                    'locked_by': f.locked_by,
                    'access_type': f.current_access_type.name,
                    'read_count': f.read_count,
                    'write_count': f.write_count,
                    'waiting': [r.process_id for r in self.waiting_queues[f.name]],
                }
                for f in self.files.values()
            ]

    def get_access_log(self) -> List[FileAccessLog]:
        with self.lock:
            return list(self.access_log)

    def get_waiting_queue(self, file_name: str) -> List[FileRequest]:
        with self.lock:
            return list(self.waiting_queues.get(file_name, ()))

    def get_granted_requests(self) -> List[FileRequest]:
        with self.lock:
            return list(self.granted_requests)

    def reset(self):
        """重置文件系统：解锁所有文件、清空等待队列与日志、解除监听者"""
        with self.lock:
            for file in self.files.values():
                file.unlock()
            for queue in self.waiting_queues.values():
                queue.clear()
            self.access_log.clear()
            self.granted_requests.clear()
            self.conflict_count = 0
            self.listener = None
