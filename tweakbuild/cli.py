"""Command-line front-end for tweakbuild.

Usage::

    tweakbuild create MyTweak --bundle-id com.example.mytweak
    tweakbuild list
    tweakbuild build MyTweak
    tweakbuild install ./TweakProjects/<id>/packages/com.example.mytweak_1.0.0_iphoneos-arm.deb
    tweakbuild run --cwd /tmp -- ls -la
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

from tweakbuild.archive import extract_archive
from tweakbuild.builder import BuildPipeline, BuildLog
from tweakbuild.config import Config
from tweakbuild.containers import resolve_writable_root, select_container_resolver
from tweakbuild.installer import InstallRunner
from tweakbuild.projects import ProjectError, ProjectStore
from tweakbuild.runner import Identity, ProcessRunner
from tweakbuild.utils import (
    ConsoleLogRenderer,
    console,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tweakbuild",
        description="tweakbuild -- compile and install Theos tweak projects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  tweakbuild create MyTweak --bundle-id com.example.mytweak\n"
            "  tweakbuild build MyTweak\n"
            "  tweakbuild install path/to/package.deb\n"
        ),
    )
    parser.add_argument("--config", type=Path, help="JSON configuration file")
    parser.add_argument("--projects-dir", type=Path, help="Directory holding tweak projects")
    parser.add_argument("--theos", help="Theos installation path (default: /var/theos)")
    parser.add_argument("--uid", type=int, help="User id for spawned tools (default: 501)")
    parser.add_argument(
        "--as-self",
        action="store_true",
        help="Run tools as the current user instead of switching identity",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Scaffold a new tweak project")
    create.add_argument("name")
    create.add_argument("--bundle-id", required=True)
    create.add_argument("--target-app", default="com.apple.springboard")

    sub.add_parser("list", help="List projects")

    build = sub.add_parser("build", help="Compile a project (make clean && make package)")
    build.add_argument("project", help="Project name or id prefix")
    build.add_argument("--no-clean", action="store_true", help="Skip 'make clean'")
    build.add_argument("--no-repair", action="store_true", help="Leave the Makefile untouched")

    repair = sub.add_parser("repair", help="Fix hardcoded THEOS paths in a project's Makefile")
    repair.add_argument("project")

    install = sub.add_parser("install", help="Install a .deb with dpkg and refresh uicache")
    install.add_argument("package", type=Path)

    extract = sub.add_parser("extract", help="Extract a zip archive with unzip")
    extract.add_argument("archive", type=Path)
    extract.add_argument("destination", type=Path)

    import_cmd = sub.add_parser("import", help="Import a zipped tweak project")
    import_cmd.add_argument("archive", type=Path)

    run = sub.add_parser("run", help="Run a command through the process runner")
    run.add_argument("--cwd", type=Path, help="Working directory")
    run.add_argument("argv", nargs=argparse.REMAINDER, help="Command and arguments")

    return parser


_PROJECT_COMMANDS = ("create", "list", "build", "repair", "import")


def load_config(args: argparse.Namespace) -> Config:
    config = Config.load(args.config) if args.config else Config.from_env()
    if args.theos:
        config.toolchain.theos_path = args.theos
    if args.uid is not None:
        config.runner.uid = args.uid
    if args.projects_dir:
        config.projects_dir = args.projects_dir
    elif (
        args.command in _PROJECT_COMMANDS
        and not args.config
        and not os.environ.get("TWEAK_PROJECTS_DIR")
    ):
        resolver = select_container_resolver(config)
        config.projects_dir = resolve_writable_root(resolver, config.bundle_id)
    return config


async def _run(args: argparse.Namespace, config: Config) -> int:
    identity = Identity.current() if args.as_self else None
    runner = ProcessRunner.from_config(config, identity=identity)
    store = ProjectStore.from_config(config)

    if args.command == "create":
        project = store.create(args.name, args.bundle_id, args.target_app)
        print_success(f"Created {project.name}")
        print_summary_table(
            {"Id": str(project.id), "Bundle": project.bundle_id, "Path": str(project.path)},
            title="Project",
        )
        return 0

    if args.command == "list":
        projects = store.load_all()
        if not projects:
            print_warning(f"No projects in {store.root}")
            return 0
        print_summary_table(
            {p.name: f"{p.bundle_id}  {str(p.id)[:8]}  {p.path}" for p in projects},
            title=f"Projects in {store.root}",
        )
        return 0

    if args.command == "build":
        project = store.get(args.project)
        if args.no_clean:
            config.build.clean_before_build = False
        if args.no_repair:
            config.build.repair_makefile = False
        log = BuildLog()
        log.subscribe(ConsoleLogRenderer())
        result = await BuildPipeline(config, runner=runner, log=log).compile(project)
        if result is None:
            return 1
        print_summary_table(
            {
                "Outcome": result.outcome.value,
                "Package": str(result.package_path or "-"),
            },
            title=f"Build {project.name}",
        )
        return 0 if result.success else 1

    if args.command == "repair":
        project = store.get(args.project)
        log = BuildLog()
        log.subscribe(ConsoleLogRenderer())
        report = BuildPipeline(config, runner=runner, log=log).repair(project)
        if not report.ok:
            return 1
        if not report.changed:
            console.print("Makefile needs no changes")
        return 0

    if args.command == "install":
        log = BuildLog()
        log.subscribe(ConsoleLogRenderer())
        result = await InstallRunner(config, runner=runner, log=log).install(args.package)
        return 0 if result is not None and result.success else 1

    if args.command == "extract":
        result = await extract_archive(runner, args.archive, args.destination, config.install)
        if result.exit_code != 0:
            print_error(f"unzip failed (exit {result.exit_code}): {result.stderr.strip()}")
            return 1
        print_success(f"Extracted {args.archive} to {args.destination}")
        return 0

    if args.command == "import":
        project = await store.import_archive(args.archive, runner)
        print_success(f"Imported {project.name} into {project.path}")
        return 0

    if args.command == "run":
        argv = args.argv[1:] if args.argv[:1] == ["--"] else args.argv
        if not argv:
            print_error("No command given")
            return 2
        result = await runner.execute(argv[0], argv[1:], working_directory=args.cwd)
        if result.stdout:
            sys.stdout.write(result.stdout)
        if result.stderr:
            sys.stderr.write(result.stderr)
        return result.exit_code if result.exit_code >= 0 else 1

    return 2


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for ``tweakbuild``."""
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_config(args)

    try:
        return asyncio.run(_run(args, config))
    except ProjectError as exc:
        print_error(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
