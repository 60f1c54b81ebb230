from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger
from rich.console import Console

from . import output
from .config import VALID_LOG_LEVELS, get_log_level, get_output_format, get_server_config, load_tracker_config
from .errors import TaskError
from .logging_utils import configure_logging, pretty
from .task_engine.engine import TaskEngine
from .task_engine.model import TaskStatus

console = Console()


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _engine(args: argparse.Namespace) -> TaskEngine:
    return TaskEngine.for_project(_resolve_project_dir(args.project_dir))


def _emit(args: argparse.Namespace, payload: dict[str, Any], render: Callable[[], None]) -> int:
    if args.json:
        sys.stdout.write(json.dumps(payload, indent=2) + '\n')
    else:
        render()
    return 0


def _init(args: argparse.Namespace) -> int:
    path = _engine(args).init()
    return _emit(args, {'store': str(path)}, lambda: console.print(f"Initialized task store at {path}"))


def _add(args: argparse.Namespace) -> int:
    task = _engine(args).create_task(
        args.title,
        description=args.desc,
        dod=args.dod,
        after_id=args.after,
        before_id=args.before,
    )
    return _emit(args, {'task': task.to_dict()}, lambda: output.print_task(console, task, 'Created'))


def _edit(args: argparse.Namespace) -> int:
    detail = _engine(args).update_task(
        args.task_id,
        title=args.title,
        description=args.desc,
        dod=args.dod,
        clear_description=args.no_desc,
        clear_dod=args.no_dod,
    )
    return _emit(args, {'task': detail.to_dict()}, lambda: output.print_task(console, detail.task, 'Updated'))


def _show(args: argparse.Namespace) -> int:
    detail = _engine(args).task_detail(args.task_id)
    return _emit(args, {'task': detail.to_dict()}, lambda: output.print_detail(console, detail))


def _list(args: argparse.Namespace) -> int:
    engine = _engine(args)
    status = TaskStatus(args.status) if args.status else None
    details, conflicts = engine.list_tasks(all_tasks=args.all, status=status, search=args.search)
    target_id = engine.get_target()
    payload = {
        'target_id': target_id,
        'tasks': [d.to_dict() for d in details],
        'order_conflicts': [c.to_dict() for c in conflicts],
    }
    return _emit(args, payload, lambda: output.print_task_table(console, details, conflicts, target_id))


def _target(args: argparse.Namespace) -> int:
    engine = _engine(args)
    if args.clear:
        engine.clear_target()
        return _emit(args, {'target_id': None}, lambda: console.print("Target cleared."))
    if args.task_id is not None:
        task = engine.set_target(args.task_id)
        return _emit(args, {'target_id': task.id}, lambda: output.print_task(console, task, 'Target:'))
    target_id = engine.get_target()
    if target_id is None:
        return _emit(args, {'target_id': None}, lambda: console.print("No target set."))
    task = engine.get_task(target_id)
    return _emit(args, {'target_id': target_id}, lambda: output.print_task(console, task, 'Target:'))


def _next(args: argparse.Namespace) -> int:
    outcome = _engine(args).next_task(all_tasks=args.all, target_id=args.target)
    return _emit(args, outcome.to_dict(), lambda: output.print_outcome(console, outcome))


def _start(args: argparse.Namespace) -> int:
    detail = _engine(args).start_task(args.task_id)
    return _emit(args, {'task': detail.to_dict()}, lambda: output.print_task(console, detail.task, 'Started'))


def _stop(args: argparse.Namespace) -> int:
    detail = _engine(args).stop_task(args.task_id)
    return _emit(args, {'task': detail.to_dict()}, lambda: output.print_task(console, detail.task, 'Stopped'))


def _done(args: argparse.Namespace) -> int:
    detail = _engine(args).complete_task(args.task_id)
    return _emit(args, {'task': detail.to_dict()}, lambda: output.print_task(console, detail.task, 'Completed'))


def _block(args: argparse.Namespace) -> int:
    detail = _engine(args).block_task(args.task_id)
    return _emit(args, {'task': detail.to_dict()}, lambda: output.print_task(console, detail.task, 'Blocked'))


def _unblock(args: argparse.Namespace) -> int:
    detail = _engine(args).unblock_task(args.task_id)
    return _emit(args, {'task': detail.to_dict()}, lambda: output.print_task(console, detail.task, 'Unblocked'))


def _current(args: argparse.Namespace) -> int:
    detail = _engine(args).current_task()
    return _emit(args, {'task': detail.to_dict()}, lambda: output.print_detail(console, detail))


def _depend(args: argparse.Namespace) -> int:
    conflicts = _engine(args).add_dependency(args.task_id, args.depends_on)
    payload = {
        'task_id': args.task_id,
        'depends_on': args.depends_on,
        'order_conflicts': [c.to_dict() for c in conflicts],
    }

    def render() -> None:
        console.print(f"#{args.task_id} now depends on #{args.depends_on}")
        for conflict in conflicts:
            console.print(f"[yellow]Warning:[/yellow] {conflict.message()}")

    return _emit(args, payload, render)


def _undepend(args: argparse.Namespace) -> int:
    _engine(args).remove_dependency(args.task_id, args.depends_on)
    payload = {'task_id': args.task_id, 'depends_on': args.depends_on, 'removed': True}
    return _emit(args, payload, lambda: console.print(f"#{args.task_id} no longer depends on #{args.depends_on}"))


def _reorder(args: argparse.Namespace) -> int:
    order = _engine(args).reorder(args.task_id, after_id=args.after, before_id=args.before)
    payload = {'id': args.task_id, 'manual_order': order}
    return _emit(args, payload, lambda: console.print(f"Moved #{args.task_id} to order {order:g}"))


def _reindex(args: argparse.Namespace) -> int:
    count = _engine(args).reindex()
    return _emit(args, {'reindexed': count}, lambda: console.print(f"Reindexed {count} tasks"))


def _log(args: argparse.Namespace) -> int:
    artifact = _engine(args).log_artifact(args.name, args.path, task_id=args.task)
    payload = {'artifact': artifact.to_dict()}
    return _emit(args, payload, lambda: console.print(f"Logged {artifact.name} for #{artifact.task_id}", markup=False))


def _artifacts(args: argparse.Namespace) -> int:
    artifacts = _engine(args).list_artifacts(args.task)
    payload = {'artifacts': [a.to_dict() for a in artifacts]}
    return _emit(args, payload, lambda: output.print_artifacts(console, artifacts))


def _tools(args: argparse.Namespace) -> int:
    from .server.tools import list_tools

    tools = list_tools()

    def render() -> None:
        for tool in tools:
            console.print(f"[bold]{tool['name']}[/bold]  {tool['description']}")

    return _emit(args, {'tools': tools}, render)


def _serve(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        sys.stderr.write("Install server extras: pip install 'dag-task-tracker[server]'\n")
        return 1

    from .server import create_app

    app = create_app(project_dir=_resolve_project_dir(args.project_dir))
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='tt', description='Dependency-aware task tracker')
    parser.add_argument('--project-dir', default=None, help='Target project directory (default: current working directory)')
    parser.add_argument('--json', action='store_true', default=None, help='Emit JSON instead of formatted text')
    parser.add_argument('--log-level', default=None, type=str.upper, choices=sorted(VALID_LOG_LEVELS), help='Log level (default: from config or WARNING)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    init = subparsers.add_parser('init', help='Create the task store in the project')
    init.set_defaults(func=_init)

    add = subparsers.add_parser('add', help='Create a task')
    add.add_argument('title')
    add.add_argument('--desc', default=None)
    add.add_argument('--dod', default=None, help='Definition of done')
    add.add_argument('--after', type=int, default=None, help='Place right after this task')
    add.add_argument('--before', type=int, default=None, help='Place right before this task')
    add.set_defaults(func=_add)

    edit = subparsers.add_parser('edit', help='Edit a task')
    edit.add_argument('task_id', type=int)
    edit.add_argument('--title', default=None)
    desc = edit.add_mutually_exclusive_group()
    desc.add_argument('--desc', default=None)
    desc.add_argument('--no-desc', action='store_true', help='Clear the description')
    dod = edit.add_mutually_exclusive_group()
    dod.add_argument('--dod', default=None)
    dod.add_argument('--no-dod', action='store_true', help='Clear the definition of done')
    edit.set_defaults(func=_edit)

    show = subparsers.add_parser('show', help='Show a task')
    show.add_argument('task_id', type=int)
    show.set_defaults(func=_show)

    lst = subparsers.add_parser('list', help='List tasks in dependency order')
    lst.add_argument('--all', action='store_true', help='List every task, not only the target subgraph')
    lst.add_argument('--status', choices=[s.value for s in TaskStatus], default=None, help='Only show tasks with this status')
    lst.add_argument('--search', default=None, help='Only show tasks whose text contains this (case-insensitive)')
    lst.set_defaults(func=_list)

    target = subparsers.add_parser('target', help='Show, set or clear the target')
    target.add_argument('task_id', type=int, nargs='?', default=None)
    target.add_argument('--clear', action='store_true')
    target.set_defaults(func=_target)

    nxt = subparsers.add_parser('next', help='Show the next task to work on')
    scope = nxt.add_mutually_exclusive_group()
    scope.add_argument('--all', action='store_true', help='Consider every task instead of the target subgraph')
    scope.add_argument('--target', type=int, default=None, help='Use this target instead of the stored one')
    nxt.set_defaults(func=_next)

    for name, func, help_text in (
        ('start', _start, 'Start a task'),
        ('block', _block, 'Mark a task as blocked'),
        ('unblock', _unblock, 'Return a blocked task to pending'),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('task_id', type=int)
        sub.set_defaults(func=func)

    for name, func, help_text in (
        ('stop', _stop, 'Return the task in progress to pending'),
        ('done', _done, 'Complete the task in progress'),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('task_id', type=int, nargs='?', default=None)
        sub.set_defaults(func=func)

    current = subparsers.add_parser('current', help='Show the task in progress')
    current.set_defaults(func=_current)

    depend = subparsers.add_parser('depend', help='Make TASK_ID depend on DEPENDS_ON')
    depend.add_argument('task_id', type=int)
    depend.add_argument('depends_on', type=int)
    depend.set_defaults(func=_depend)

    undepend = subparsers.add_parser('undepend', help='Remove a dependency')
    undepend.add_argument('task_id', type=int)
    undepend.add_argument('depends_on', type=int)
    undepend.set_defaults(func=_undepend)

    reorder = subparsers.add_parser('reorder', help='Change the manual order of a task')
    reorder.add_argument('task_id', type=int)
    reorder.add_argument('--after', type=int, default=None)
    reorder.add_argument('--before', type=int, default=None)
    reorder.set_defaults(func=_reorder)

    reindex = subparsers.add_parser('reindex', help='Renumber manual order values')
    reindex.set_defaults(func=_reindex)

    log = subparsers.add_parser('log', help='Record an artifact for a task')
    log.add_argument('name')
    log.add_argument('path')
    log.add_argument('--task', type=int, default=None, help='Task ID (default: the task in progress)')
    log.set_defaults(func=_log)

    artifacts = subparsers.add_parser('artifacts', help='List artifacts of a task')
    artifacts.add_argument('--task', type=int, default=None, help='Task ID (default: the task in progress)')
    artifacts.set_defaults(func=_artifacts)

    tools = subparsers.add_parser('tools', help='List the RPC tools')
    tools.set_defaults(func=_tools)

    serve = subparsers.add_parser('serve', help='Start the HTTP server')
    serve.add_argument('--host', default=None)
    serve.add_argument('--port', default=None, type=int)
    serve.set_defaults(func=_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1

    config, config_err = load_tracker_config(_resolve_project_dir(args.project_dir))
    configure_logging(args.log_level or get_log_level(config))
    if config_err:
        logger.warning("Ignoring unreadable config: {}", config_err)
    elif config:
        logger.debug("Loaded config: {}", pretty(config))
    if args.json is None:
        args.json = get_output_format(config) == 'json'
    if args.command == 'serve':
        server = get_server_config(config)
        args.host = args.host or server['host']
        args.port = args.port or server['port']

    try:
        return int(handler(args) or 0)
    except TaskError as exc:
        if args.json:
            sys.stderr.write(json.dumps({'error': exc.to_dict()}) + '\n')
        else:
            sys.stderr.write(str(exc) + '\n')
        return 1
