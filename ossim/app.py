# -*- coding: utf-8 -*-
"""
操作系统模拟器 - Flask后端应用
提供RESTful API接口驱动模拟，并通过WebSocket推送调度事件
"""

import logging
import threading
from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO, emit

from .config import (MAX_PROCESSES, MAX_RUN_STEPS, STEP_INTERVAL,
                     SERVER_HOST, SERVER_PORT, TIME_QUANTUM)
from .core import (Simulator, Process, ProcessState, SchedulingAlgorithm,
                   PageReplacementAlgorithm, FileAccessType)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger('ossim')


# 创建Flask应用 (纯API模式，前后端分离)
app = Flask(__name__)
app.config['SECRET_KEY'] = 'ossim_2025'
CORS(app, resources={r"/api/*": {"origins": "*"}})
socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading')

# 初始化核心组件
simulator = Simulator()

# 自动运行状态
auto_run = {'running': False, 'interval': STEP_INTERVAL, 'generation': 0}
auto_run_lock = threading.Lock()


# 将调度事件推送给前端
def _emit_scheduler_event(evt: dict):
    try:
        socketio.emit('scheduler_event', evt)
    except Exception:
        pass


simulator.scheduler.set_event_emitter(_emit_scheduler_event)


def _error(message: str, status: int = 400):
    return jsonify({'success': False, 'error': message}), status


def _parse_enum(enum_cls, value):
    try:
        return enum_cls[str(value).upper()]
    except KeyError:
        return None


def _do_step() -> dict:
    """执行一步并推送结果"""
    result = simulator.step().to_dict()
    socketio.emit('step', result)
    if result['deadlock']:
        logger.warning('检测到疑似死锁 (t=%d)', result['time'])
        socketio.emit('deadlock', {'time': result['time'], 'waiting': [
            p.pid for p in simulator.scheduler.get_waiting_processes()]})
    return result


# ==================== 模拟控制API ====================
@app.route('/api/state', methods=['GET'])
def get_state():
    """获取整体状态快照"""
    return jsonify(simulator.snapshot())


@app.route('/api/step', methods=['POST'])
def step():
    """执行一步"""
    result = _do_step()
    return jsonify({'success': True, 'result': result})


@app.route('/api/run', methods=['POST'])
def run():
    """一直运行到结束、疑似死锁或达到最大步数"""
    data = request.get_json(silent=True) or {}
    try:
        max_steps = int(data.get('max_steps', MAX_RUN_STEPS))
    except (TypeError, ValueError):
        return _error('max_steps 需为整数')
    if max_steps < 1:
        return _error('max_steps 必须 >= 1')

    results = simulator.run(max_steps)
    last = results[-1].to_dict() if results else None
    if last and last['deadlock']:
        logger.warning('运行在 t=%d 因疑似死锁停止', last['time'])
    return jsonify({
        'success': True,
        'steps': len(results),
        'last': last,
        'metrics': simulator.snapshot()['metrics'],
    })


def _auto_run_loop(generation: int):
    """自动运行：每个间隔执行一步；generation 变化后旧循环退出"""
    while True:
        with auto_run_lock:
            if not auto_run['running'] or auto_run['generation'] != generation:
                return
            interval = auto_run['interval']
            result = _do_step()
            if not result['has_work'] or result['deadlock']:
                auto_run['running'] = False
                logger.info('自动运行结束 (t=%d)', result['time'])
                return
        socketio.sleep(interval)


def _stop_auto_run():
    with auto_run_lock:
        auto_run['running'] = False
        auto_run['generation'] += 1


@app.route('/api/simulation/start', methods=['POST'])
def start_simulation():
    """开始自动运行"""
    data = request.get_json(silent=True) or {}
    with auto_run_lock:
        if 'interval' in data:
            try:
                auto_run['interval'] = max(0.01, float(data['interval']))
            except (TypeError, ValueError):
                return _error('interval 需为数字')
        if auto_run['running']:
            return jsonify({'success': True, 'message': '模拟已在运行'})
        auto_run['running'] = True
        auto_run['generation'] += 1
        generation = auto_run['generation']
    socketio.start_background_task(_auto_run_loop, generation)
    return jsonify({'success': True, 'message': '模拟已启动'})


@app.route('/api/simulation/pause', methods=['POST'])
def pause_simulation():
    """暂停自动运行"""
    _stop_auto_run()
    return jsonify({'success': True, 'message': '模拟已暂停'})


@app.route('/api/reset', methods=['POST'])
def reset():
    """重置模拟，可同时修改配置"""
    data = request.get_json(silent=True) or {}
    options = {}

    if 'algorithm' in data:
        options['algorithm'] = _parse_enum(SchedulingAlgorithm, data['algorithm'])
        if options['algorithm'] is None:
            return _error(f"未知调度算法: {data['algorithm']}")
    if 'replacement' in data:
        options['replacement'] = _parse_enum(PageReplacementAlgorithm, data['replacement'])
        if options['replacement'] is None:
            return _error(f"未知置换算法: {data['replacement']}")
    if 'access_type' in data:
        options['access_type'] = _parse_enum(FileAccessType, data['access_type'])
        if options['access_type'] in (None, FileAccessType.NONE):
            return _error(f"未知访问类型: {data['access_type']}")
    for key in ('time_quantum', 'frame_count'):
        if key in data:
            try:
                options[key] = int(data[key])
            except (TypeError, ValueError):
                return _error(f'{key} 需为整数')
            if options[key] < 1:
                return _error(f'{key} 必须 >= 1')

    _stop_auto_run()
    simulator.configure(**options)
    logger.info('模拟已重置')
    socketio.emit('reset', {'message': '模拟已重置'})
    return jsonify({'success': True, 'message': '模拟已重置'})


# ==================== 进程API ====================
@app.route('/api/processes', methods=['GET'])
def list_processes():
    """获取进程列表"""
    processes = [p.to_dict() for p in simulator.scheduler.get_all_processes()]
    return jsonify({'processes': processes, 'stats': simulator.scheduler.get_stats()})


@app.route('/api/processes', methods=['POST'])
def create_process():
    """提交新进程"""
    data = request.get_json(silent=True) or {}
    existing = simulator.scheduler.get_all_processes()
    if len(existing) >= MAX_PROCESSES:
        return _error(f'进程数已达上限 {MAX_PROCESSES}')

    try:
        pid = int(data.get('pid', max((p.pid for p in existing), default=0) + 1))
        priority = int(data.get('priority', 0))
        burst_time = int(data.get('burst_time', 1))
        arrival_time = int(data.get('arrival_time', 0))
        pages = [int(p) for p in data.get('pages', [])]
    except (TypeError, ValueError):
        return _error('pid/priority/burst_time/arrival_time/pages 需为整数')

    files = data.get('files', [])
    if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
        return _error('files 需为字符串列表')
    if burst_time < 1 or arrival_time < 0:
        return _error('burst_time 必须 >= 1，arrival_time 必须 >= 0')

    process = Process(
        pid=pid,
        name=data.get('name') or f'P{pid}',
        priority=priority,
        burst_time=burst_time,
        arrival_time=arrival_time,
        required_pages=pages,
        required_files=files
    )
    if not simulator.add_process(process):
        return _error(f'进程 {pid} 已存在', 409)

    socketio.emit('process_created', process.to_dict())
    return jsonify({'success': True, 'pid': pid, 'process': process.to_dict()})


@app.route('/api/processes/<int:pid>', methods=['GET'])
def get_process(pid):
    """获取进程信息"""
    process = simulator.scheduler.find_process(pid)
    if process:
        return jsonify({'success': True, 'process': process.to_dict()})
    return _error('进程不存在', 404)


# ==================== 调度器API ====================
@app.route('/api/scheduler/status', methods=['GET'])
def scheduler_status():
    """获取调度器状态"""
    return jsonify({
        'stats': simulator.scheduler.get_stats(),
        'metrics': simulator.scheduler.get_metrics(),
        'ready_queue': [p.pid for p in simulator.scheduler.get_ready_queue()],
        'waiting': [p.pid for p in simulator.scheduler.get_waiting_processes()],
    })


@app.route('/api/scheduler/events', methods=['GET'])
def scheduler_events():
    """获取调度事件"""
    count = request.args.get('count', 20, type=int)
    return jsonify({'events': simulator.scheduler.get_events(count)})


@app.route('/api/scheduler/events/clear', methods=['POST'])
def scheduler_clear_events():
    """清空调度事件"""
    simulator.scheduler.clear_events()
    return jsonify({'success': True, 'message': '已清空调度事件'})


@app.route('/api/scheduler/gantt', methods=['GET'])
def scheduler_gantt():
    """获取甘特图数据"""
    return jsonify({'gantt': simulator.scheduler.get_gantt_data()})


@app.route('/api/scheduler/algorithm', methods=['PUT'])
def set_algorithm():
    """切换调度算法"""
    data = request.get_json(silent=True) or {}
    algorithm = _parse_enum(SchedulingAlgorithm, data.get('algorithm'))
    if algorithm is None:
        return _error(f"未知调度算法: {data.get('algorithm')}")
    simulator.scheduler.set_algorithm(algorithm)
    return jsonify({'success': True, 'algorithm': algorithm.name})


@app.route('/api/scheduler/quantum', methods=['PUT'])
def set_time_quantum():
    """设置时间片大小"""
    data = request.get_json(silent=True) or {}
    try:
        quantum = int(data.get('quantum', TIME_QUANTUM))
    except (TypeError, ValueError):
        return _error('quantum 需为整数')
    if quantum < 1:
        return _error('quantum 必须 >= 1')
    simulator.scheduler.set_time_quantum(quantum)
    return jsonify({'success': True, 'quantum': quantum})


# ==================== 内存API ====================
@app.route('/api/memory/status', methods=['GET'])
def memory_status():
    """获取页框状态"""
    return jsonify({
        'frames': simulator.memory.get_memory_state(),
        'stats': simulator.memory.get_metrics(),
    })


@app.route('/api/memory/log', methods=['GET'])
def memory_log():
    """获取置换日志"""
    return jsonify({'log': simulator.memory.get_swap_log()})


@app.route('/api/memory/access', methods=['POST'])
def memory_access():
    """访问页面；不在内存中时触发缺页"""
    data = request.get_json(silent=True) or {}
    try:
        pid = int(data['pid'])
        page = int(data['page'])
    except (KeyError, TypeError, ValueError):
        return _error('pid 和 page 需为整数')

    fault = simulator.memory.access_page(pid, page)
    return jsonify({'success': True, 'fault': fault, 'stats': simulator.memory.get_metrics()})


@app.route('/api/memory/free/<int:pid>', methods=['POST'])
def memory_free(pid):
    """释放进程的所有页框"""
    simulator.memory.free_process_pages(pid)
    return jsonify({'success': True, 'stats': simulator.memory.get_metrics()})


# ==================== 文件API ====================
@app.route('/api/files', methods=['GET'])
def list_files():
    """获取文件列表"""
    return jsonify({
        'files': simulator.filesystem.get_all_files(),
        'stats': simulator.filesystem.get_metrics(),
    })


@app.route('/api/files', methods=['POST'])
def create_file():
    """创建文件"""
    data = request.get_json(silent=True) or {}
    filename = data.get('filename', '')
    if not isinstance(filename, str) or not filename:
        return _error('文件名不能为空')

    created = simulator.create_file(filename, str(data.get('content', '')))
    socketio.emit('file_created', {'filename': filename, 'created': created})
    return jsonify({'success': True, 'created': created})


def _file_request_args():
    data = request.get_json(silent=True) or {}
    try:
        return data, int(data['pid'])
    except (KeyError, TypeError, ValueError):
        return data, None


@app.route('/api/files/<filename>/request', methods=['POST'])
def request_file(filename):
    """申请文件访问权"""
    data, pid = _file_request_args()
    if pid is None:
        return _error('pid 需为整数')
    access_type = _parse_enum(FileAccessType, data.get('access_type', 'READ'))
    if access_type in (None, FileAccessType.NONE):
        return _error(f"未知访问类型: {data.get('access_type')}")

    process = simulator.scheduler.find_process(pid)
    if process is None:
        return _error(f'进程 {pid} 不存在', 404)
    if process.state == ProcessState.TERMINATED:
        return _error(f'进程 {pid} 已终止', 409)

    granted = simulator.filesystem.request_access(pid, filename, access_type)
    return jsonify({'success': True, 'granted': granted})


@app.route('/api/files/<filename>/release', methods=['POST'])
def release_file(filename):
    """释放文件访问权"""
    _, pid = _file_request_args()
    if pid is None:
        return _error('pid 需为整数')
    simulator.filesystem.release_access(pid, filename)
    return jsonify({'success': True})


@app.route('/api/files/<filename>/read', methods=['POST'])
def read_file(filename):
    """读取文件（需持有锁）"""
    _, pid = _file_request_args()
    if pid is None:
        return _error('pid 需为整数')
    content = simulator.filesystem.read_file(pid, filename)
    if content is None:
        return jsonify({'success': False, 'error': '无访问权'})
    return jsonify({'success': True, 'content': content})


@app.route('/api/files/<filename>/write', methods=['POST'])
def write_file(filename):
    """写入文件（需以 WRITE 方式持有锁）"""
    data, pid = _file_request_args()
    if pid is None:
        return _error('pid 需为整数')
    success = simulator.filesystem.write_file(pid, filename, str(data.get('content', '')))
    return jsonify({'success': success})


@app.route('/api/files/<filename>/queue', methods=['GET'])
def file_queue(filename):
    """获取文件的等待队列"""
    if simulator.filesystem.get_file(filename) is None:
        return _error('文件不存在', 404)
    queue = [
        {
            'pid': r.process_id,
            'access_type': r.access_type.name,
            'request_time': r.request_time,
        }
        for r in simulator.filesystem.get_waiting_queue(filename)
    ]
    return jsonify({'success': True, 'queue': queue})


@app.route('/api/files/log', methods=['GET'])
def file_log():
    """获取文件访问日志"""
    log = [
        {
            'pid': entry.process_id,
            'filename': entry.file_name,
            'access_type': entry.access_type.name,
            'timestamp': entry.timestamp,
            'success': entry.success,
            'message': entry.message,
        }
        for entry in simulator.filesystem.get_access_log()
    ]
    return jsonify({'log': log})


# ==================== 统计API ====================
@app.route('/api/stats', methods=['GET'])
def get_all_stats():
    """获取所有统计信息"""
    return jsonify({
        **simulator.snapshot()['metrics'],
        'scheduler_stats': simulator.scheduler.get_stats(),
    })


# ==================== WebSocket事件 ====================
@socketio.on('connect')
def handle_connect():
    """客户端连接"""
    emit('connected', {'message': '已连接到服务器'})


@socketio.on('get_status')
def handle_get_status():
    """获取系统状态"""
    emit('status', simulator.snapshot())


@socketio.on('step')
def handle_step():
    """通过WebSocket执行一步"""
    emit('step_result', _do_step())


def main():
    print("=" * 50)
    print("操作系统模拟器 API 服务")
    print("=" * 50)
    print(f"调度算法: {simulator.scheduler.algorithm.name}  时间片: {simulator.scheduler.time_quantum}")
    print(f"页框数量: {simulator.memory.frame_count}  置换算法: {simulator.memory.algorithm.name}")
    print("=" * 50)
    print(f"API/SocketIO: http://localhost:{SERVER_PORT}")
    print("=" * 50)

    socketio.run(app, host=SERVER_HOST, port=SERVER_PORT, debug=False, allow_unsafe_werkzeug=True)


# ==================== 主程序入口 ====================
if __name__ == '__main__':
    main()
