"""Entry point for filame.

Usage:
    filame scan
    filame export [NAME] [-m MESSAGE] [--no-save-credentials]
    filame pull | status
    filame apply NAME
    filame add NAME [--source aur] [--description TEXT] --file SRC:DEST ...
    filame remove NAME
    filame set-remote URL [--device NAME]

Environment variables:
    FILAME_LOG_LEVEL   DEBUG, INFO, WARNING, ERROR (default: WARNING)
    FILAME_HOME, FILAME_REPO_DIR, FILAME_CONFIG_FILE, FILAME_CREDENTIALS_FILE
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from pathlib import Path

from pydantic import ValidationError

from .config import ConfigError, ConfigLoader, FilameConfig, RuntimePaths
from .git import (
    Credentials,
    CredentialStore,
    GitRepoManager,
    SyncManager,
    SyncResult,
)
from .models import ConfigFile, PackageBundle

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure the root logger from FILAME_LOG_LEVEL."""
    level_str = os.environ.get("FILAME_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_str, logging.WARNING),
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def prompt_credentials() -> Credentials | None:
    """Ask for a username and token. An empty username declines."""
    print("Push failed. Enter credentials to retry (leave username empty to skip).")
    username = input("Username: ").strip()
    if not username:
        return None
    token = getpass.getpass("Token: ").strip()
    return Credentials(username, token)


def build_sync_manager(paths: RuntimePaths) -> SyncManager:
    """Wire the components for one set of runtime paths."""
    store = CredentialStore(
        paths.credentials_file,
        default_location=paths.uses_default_credentials_file,
    )
    repo_manager = GitRepoManager(paths.repo_dir, credential_store=store)
    return SyncManager(repo_manager, home=paths.home)


def expand_home(path: str, home: Path) -> str:
    """Expand a leading ``~`` against the configured home directory."""
    if path == "~":
        return str(home)
    if path.startswith("~/"):
        return str(home / path[2:])
    return path


def report(result: SyncResult, success_message: str = "") -> int:
    """Print a result and map it to an exit code."""
    if not result:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    print(success_message or result.message or "Done")
    if result.warning:
        print(f"Warning: {result.warning}", file=sys.stderr)
    return 0


def cmd_scan(args, config: FilameConfig, loader: ConfigLoader, sync: SyncManager) -> int:
    result = sync.refresh_bundles_from_repo(config)
    if result:
        loader.save(result.value)
        for bundle in result.value.bundles:
            print(f"  {bundle.name} ({bundle.source}): {len(bundle.config_files)} file(s)")
    return report(result)


def cmd_export(args, config: FilameConfig, loader: ConfigLoader, sync: SyncManager) -> int:
    persist = not args.no_save_credentials
    provider = prompt_credentials if sys.stdin.isatty() else None

    if args.name:
        bundle = config.get_bundle(args.name)
        if bundle is None:
            print(f"Error: unknown bundle '{args.name}'", file=sys.stderr)
            return 1
        message = args.message or f"Update {bundle.name} config"
        result = sync.export_bundle_and_push(config, bundle, message, provider, persist)
        return report(result, f"Exported {bundle.name} ({result.value})" if result else "")

    message = args.message or f"Update configs from {config.device_name or 'device'}"
    result = sync.export_all_and_push(config, message, provider, persist)
    if result:
        summary = result.value
        return report(
            result,
            f"Exported {summary.files_exported} file(s) and "
            f"{summary.metadata_exported} bundle descriptor(s)",
        )
    return report(result)


def cmd_pull(args, config: FilameConfig, loader: ConfigLoader, sync: SyncManager) -> int:
    return report(sync.pull_from_repo(config))


def cmd_status(args, config: FilameConfig, loader: ConfigLoader, sync: SyncManager) -> int:
    result = sync.status(config)
    if result:
        status = result.value
        print(f"{status.local_changes} local change(s), {status.ahead} ahead, {status.behind} behind")
        for label, files in (
            ("modified", status.modified),
            ("added", status.added),
            ("deleted", status.deleted),
            ("untracked", status.untracked),
        ):
            for path in files:
                print(f"  {label}: {path}")
        return 0
    return report(result)


def cmd_apply(args, config: FilameConfig, loader: ConfigLoader, sync: SyncManager) -> int:
    result = sync.apply_bundle_from_repo(config, args.name)
    if result:
        for path in result.value:
            print(f"  {path}")
    return report(result)


def cmd_add(args, config: FilameConfig, loader: ConfigLoader, sync: SyncManager) -> int:
    home = args.paths.home
    config_files = []
    for spec in args.file or []:
        source, sep, destination = spec.partition(":")
        if not sep or not source or not destination:
            print(f"Error: expected SRC:DEST, got '{spec}'", file=sys.stderr)
            return 1
        config_files.append(
            ConfigFile(source_path=expand_home(source, home), destination_path=destination)
        )

    try:
        bundle = PackageBundle(
            name=args.name,
            source=args.source,
            description=args.description,
            config_files=config_files,
        )
    except ValidationError as e:
        print(f"Error: invalid bundle '{args.name}': {e}", file=sys.stderr)
        return 1

    replaced = config.get_bundle(args.name) is not None
    loader.save(config.upsert_bundle(bundle))
    print(f"{'Updated' if replaced else 'Added'} bundle {args.name}")
    return 0


def cmd_remove(args, config: FilameConfig, loader: ConfigLoader, sync: SyncManager) -> int:
    if config.get_bundle(args.name) is None:
        print(f"Error: unknown bundle '{args.name}'", file=sys.stderr)
        return 1
    loader.save(config.remove_bundle(args.name))
    print(f"Removed bundle {args.name}")
    return 0


def cmd_set_remote(args, config: FilameConfig, loader: ConfigLoader, sync: SyncManager) -> int:
    device = args.device if args.device is not None else config.device_name
    loader.save(config.with_settings(device, args.url))
    print(f"Remote set to {args.url}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="filame",
        description="Track dotfiles and package bundles in a git repository",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("scan", help="Refresh the bundle list from the repository")
    p.set_defaults(func=cmd_scan)

    p = sub.add_parser("export", help="Export bundles to the repository and push")
    p.add_argument("name", nargs="?", help="Bundle to export (default: all)")
    p.add_argument("-m", "--message", help="Commit message")
    p.add_argument(
        "--no-save-credentials",
        action="store_true",
        help="Do not store credentials entered after a failed push",
    )
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("pull", help="Pull the repository")
    p.set_defaults(func=cmd_pull)

    p = sub.add_parser("status", help="Show working copy status")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("apply", help="Copy a bundle's files from the repository to this host")
    p.add_argument("name")
    p.set_defaults(func=cmd_apply)

    p = sub.add_parser("add", help="Add or replace a bundle in the config")
    p.add_argument("name")
    p.add_argument("--source", default="official", help="official, aur, ...")
    p.add_argument("--description", default="")
    p.add_argument(
        "--file",
        action="append",
        metavar="SRC:DEST",
        help="Host path and repository path (repeatable)",
    )
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("remove", help="Remove a bundle from the config")
    p.add_argument("name")
    p.set_defaults(func=cmd_remove)

    p = sub.add_parser("set-remote", help="Set the remote repository URL")
    p.add_argument("url")
    p.add_argument("--device", help="Device name")
    p.set_defaults(func=cmd_set_remote)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run filame."""
    setup_logging()
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    args.paths = RuntimePaths.resolve()
    loader = ConfigLoader(args.paths.config_file)
    try:
        config = loader.load()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    sync = build_sync_manager(args.paths)
    try:
        return args.func(args, config, loader, sync)
    except OSError as e:
        logger.error(f"I/O error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
