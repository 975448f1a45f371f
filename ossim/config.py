# -*- coding: utf-8 -*-
"""
操作系统模拟器 - 配置文件
调度器、内存管理器和文件管理器的全局配置
"""

# ==================== 进程调度配置 ====================
TIME_QUANTUM = 4                 # 时间片大小（时间单位）
DEFAULT_SCHEDULING = 'ROUND_ROBIN'  # ROUND_ROBIN / SJF / PRIORITY
MAX_PROCESSES = 64               # 最大进程数
MAX_SCHEDULE_EVENTS = 200        # 调度事件保留条数

# ==================== 内存配置 ====================
FRAME_COUNT = 16                 # 页框数量
DEFAULT_REPLACEMENT = 'LRU'      # FIFO / LRU
MAX_SWAP_LOG = 50                # 置换日志保留条数

# ==================== 文件系统配置 ====================
DEFAULT_ACCESS_TYPE = 'READ'     # 驱动层访问文件时使用的访问类型

# ==================== 运行配置 ====================
STEP_INTERVAL = 0.5              # 自动运行时每步间隔（秒）
MAX_RUN_STEPS = 10000            # 一次性运行的最大步数

# ==================== 服务配置 ====================
SERVER_HOST = '0.0.0.0'
SERVER_PORT = 3456
