# -*- coding: utf-8 -*-
"""
操作系统模拟器 - CPU 调度、请求分页与文件锁的协同模拟
"""

__version__ = '1.0.0'
