"""Command line front end for PocketPrompt.

Start here with `python -m pocketprompt.frontend.cli.app --help`, or the
installed `pocketprompt` script.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pyperclip

from pocketprompt.core.exceptions import (
    IdentityUnavailableError,
    PocketPromptError,
    PromptImportError,
    PromptNotFoundError,
)
from pocketprompt.core.importer import (
    BatchImportResult,
    FileImportResult,
    import_markdown_directory,
    import_markdown_file,
)
from pocketprompt.core.models import Prompt
from pocketprompt.frontend.cli.context import AppContext, build_context
from pocketprompt.frontend.cli.logging_config import configure_logging
from pocketprompt.security.keystore import assess_keyring_backend
from pocketprompt.security.policy import should_encrypt

logger = logging.getLogger(__name__)


def _split_tags(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def _read_content(args) -> Optional[str]:
    # --content wins, then --file, then piped stdin
    if getattr(args, "content", None) is not None:
        return args.content
    if getattr(args, "file", None):
        return Path(args.file).expanduser().read_text(encoding="utf-8")
    return None


def _password(ctx: AppContext, prompt: str = "Password: ") -> str:
    if ctx.settings.password:
        return ctx.settings.password
    return getpass.getpass(prompt)


async def _owner(ctx: AppContext) -> str:
    identity = await ctx.current_identity()
    if not identity:
        raise IdentityUnavailableError(
            "No identity connected; run `pocketprompt identity set <address>` "
            "or set POCKETPROMPT_IDENTITY"
        )
    return identity


async def _owned_prompt(ctx: AppContext, prompt_id: str) -> Prompt:
    # other identities' prompts are reported as missing
    owner = await _owner(ctx)
    prompt = ctx.store.get_prompt(prompt_id)
    if prompt.owner != owner:
        raise PromptNotFoundError(f"Prompt {prompt_id} not found")
    return prompt


def _format_row(prompt: Prompt) -> str:
    lock = "*" if prompt.is_encrypted else " "
    archived = " (archived)" if prompt.is_archived else ""
    tags = f" [{', '.join(prompt.tags)}]" if prompt.tags else ""
    return f"{lock} {prompt.prompt_id}  {prompt.title}{tags}{archived}"


# === Commands ===


async def cmd_identity(ctx: AppContext, args) -> int:
    if args.action == "set":
        secure, message = assess_keyring_backend()
        if not secure:
            logger.warning("Keyring backend: %s", message)
        ctx.keyring_identity.connect(args.address)
        # a new identity means a different master key
        ctx.encryption.clear_session_cache()
        print(f"Identity set to {args.address}")
    elif args.action == "clear":
        ctx.keyring_identity.disconnect()
        ctx.encryption.clear_session_cache()
        print("Identity cleared")
    else:
        identity = await ctx.current_identity()
        print(identity or "No identity connected")
    return 0


async def cmd_add(ctx: AppContext, args) -> int:
    owner = await _owner(ctx)
    content = _read_content(args)
    if content is None:
        content = sys.stdin.read()
    tags = _split_tags(args.tags) or []

    password = _password(ctx) if should_encrypt(tags) else None
    prompt = await ctx.store.create_prompt(
        owner,
        args.title,
        content,
        tags=tags,
        description=args.description or "",
        password=password,
    )
    print(prompt.prompt_id)
    return 0


async def cmd_edit(ctx: AppContext, args) -> int:
    prompt = await _owned_prompt(ctx, args.prompt_id)
    content = _read_content(args)
    tags = _split_tags(args.tags)

    new_tags = tags if tags is not None else prompt.tags
    needs_password = prompt.is_encrypted or should_encrypt(new_tags)
    changes_content = content is not None or should_encrypt(new_tags) != prompt.is_encrypted
    password = _password(ctx) if needs_password and changes_content else None

    await ctx.store.update_prompt(
        args.prompt_id,
        title=args.title,
        description=args.description,
        content=content,
        tags=tags,
        password=password,
    )
    print(f"Updated {args.prompt_id}")
    return 0


async def cmd_list(ctx: AppContext, args) -> int:
    owner = await _owner(ctx)
    prompts = ctx.store.list_prompts(owner, include_archived=args.all)
    if args.tag:
        wanted = args.tag.lower()
        prompts = [p for p in prompts if any(t.lower() == wanted for t in p.tags)]
    for prompt in prompts:
        print(_format_row(prompt))
    if not prompts:
        print("No prompts")
    return 0


async def cmd_tags(ctx: AppContext, args) -> int:
    owner = await _owner(ctx)
    for tag in ctx.store.list_tags(owner):
        print(tag)
    return 0


async def cmd_show(ctx: AppContext, args) -> int:
    prompt = await _owned_prompt(ctx, args.prompt_id)
    content = prompt.content
    if args.version:
        content = ctx.store.versions.get_version(prompt.prompt_id, args.version).content
    password = _password(ctx) if content.is_encrypted else None
    text = await ctx.encryption.prepare_content_for_display(content, password)

    if args.copy:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            print(f"error: could not copy to clipboard: {e}", file=sys.stderr)
            return 1
        print(f"Copied {prompt.title!r} to clipboard")
        return 0

    print(f"# {prompt.title}")
    if prompt.description:
        print(prompt.description)
    print()
    print(text)
    return 0


async def cmd_check_password(ctx: AppContext, args) -> int:
    prompt = await _owned_prompt(ctx, args.prompt_id)
    if not prompt.is_encrypted:
        print("Prompt is not encrypted")
        return 0
    if await ctx.encryption.validate_password(prompt.content, _password(ctx)):
        print("Password OK")
        return 0
    print("Password incorrect")
    return 1


async def cmd_archive(ctx: AppContext, args) -> int:
    await _owned_prompt(ctx, args.prompt_id)
    ctx.store.archive_prompt(args.prompt_id)
    print(f"Archived {args.prompt_id}")
    return 0


async def cmd_restore(ctx: AppContext, args) -> int:
    await _owned_prompt(ctx, args.prompt_id)
    ctx.store.restore_prompt(args.prompt_id)
    print(f"Restored {args.prompt_id}")
    return 0


async def cmd_delete(ctx: AppContext, args) -> int:
    await _owned_prompt(ctx, args.prompt_id)
    ctx.store.delete_prompt(args.prompt_id)
    print(f"Deleted {args.prompt_id}")
    return 0


async def cmd_history(ctx: AppContext, args) -> int:
    prompt = await _owned_prompt(ctx, args.prompt_id)
    print(f"v{prompt.version} (current)  {prompt.title}")
    for version in ctx.store.list_versions(prompt.prompt_id):
        lock = "*" if version.is_encrypted else " "
        when = version.created_at.strftime("%Y-%m-%d %H:%M")
        note = f"  ({version.change_description})" if version.change_description else ""
        print(f"{lock} v{version.version_number}  {version.version_id}  {when}  {version.title}{note}")
    return 0


async def cmd_revert(ctx: AppContext, args) -> int:
    await _owned_prompt(ctx, args.prompt_id)
    prompt = ctx.store.restore_version(args.prompt_id, args.version_id)
    print(f"Restored {args.prompt_id} as v{prompt.version}")
    return 0


def _collect_imports(paths: List[str]) -> BatchImportResult:
    batch = BatchImportResult()
    for raw in paths:
        path = Path(raw).expanduser()
        if path.is_dir():
            batch.results.extend(import_markdown_directory(path).results)
            continue
        try:
            batch.results.append(FileImportResult(path.name, prompt=import_markdown_file(path)))
        except PromptImportError as e:
            batch.results.append(FileImportResult(path.name, error=str(e)))
    return batch


async def cmd_import(ctx: AppContext, args) -> int:
    owner = await _owner(ctx)
    batch = _collect_imports(args.paths)
    if not batch.total:
        print("error: no markdown files found", file=sys.stderr)
        return 1

    for result in batch.results:
        if not result.success:
            print(f"skipped {result.file_name}: {result.error}", file=sys.stderr)

    prompts = batch.prompts
    password = _password(ctx) if any(should_encrypt(p.tags) for p in prompts) else None
    await ctx.store.import_prompts(owner, prompts, password)
    print(f"Imported {batch.successful} of {batch.total} files")
    return 0 if batch.failed == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pocketprompt",
        description="Store prompts locally; everything not tagged 'public' is encrypted.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="more logging (-vv for debug)")
    sub = parser.add_subparsers(dest="command", required=True)

    identity = sub.add_parser("identity", help="manage the identity used for key derivation")
    identity_sub = identity.add_subparsers(dest="action", required=True)
    identity_set = identity_sub.add_parser("set", help="remember an identity in the OS keystore")
    identity_set.add_argument("address")
    identity_sub.add_parser("show", help="print the current identity")
    identity_sub.add_parser("clear", help="forget the stored identity")
    identity.set_defaults(func=cmd_identity)

    add = sub.add_parser("add", help="add a prompt (content from --content, --file or stdin)")
    add.add_argument("title")
    add.add_argument("--content")
    add.add_argument("--file")
    add.add_argument("--tags", help="comma separated; include 'public' to store unencrypted")
    add.add_argument("--description")
    add.set_defaults(func=cmd_add)

    edit = sub.add_parser("edit", help="change a prompt")
    edit.add_argument("prompt_id")
    edit.add_argument("--title")
    edit.add_argument("--content")
    edit.add_argument("--file")
    edit.add_argument("--tags")
    edit.add_argument("--description")
    edit.set_defaults(func=cmd_edit)

    lst = sub.add_parser("list", help="list prompts (* = encrypted)")
    lst.add_argument("--all", action="store_true", help="include archived prompts")
    lst.add_argument("--tag")
    lst.set_defaults(func=cmd_list)

    tags = sub.add_parser("tags", help="list tags in use")
    tags.set_defaults(func=cmd_tags)

    show = sub.add_parser("show", help="print a prompt, decrypting if needed")
    show.add_argument("prompt_id")
    show.add_argument("--copy", action="store_true", help="copy to clipboard instead of printing")
    show.add_argument("--version", metavar="VERSION_ID", help="show a saved version instead (see history)")
    show.set_defaults(func=cmd_show)

    history = sub.add_parser("history", help="list saved versions of a prompt (* = encrypted)")
    history.add_argument("prompt_id")
    history.set_defaults(func=cmd_history)

    revert = sub.add_parser("revert", help="make a saved version current again")
    revert.add_argument("prompt_id")
    revert.add_argument("version_id")
    revert.set_defaults(func=cmd_revert)

    imp = sub.add_parser("import", help="import markdown prompts (files or directories of .md files)")
    imp.add_argument("paths", nargs="+")
    imp.set_defaults(func=cmd_import)

    check = sub.add_parser("check-password", help="check a password against an encrypted prompt")
    check.add_argument("prompt_id")
    check.set_defaults(func=cmd_check_password)

    for name, func in (("archive", cmd_archive), ("restore", cmd_restore), ("delete", cmd_delete)):
        cmd = sub.add_parser(name, help=f"{name} a prompt")
        cmd.add_argument("prompt_id")
        cmd.set_defaults(func=func)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the PocketPrompt command line."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        ctx = build_context()
    except PocketPromptError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    level = ctx.settings.log_level
    if args.verbose:
        level = logging.DEBUG if args.verbose > 1 else logging.INFO
    configure_logging(level)

    try:
        return asyncio.run(args.func(ctx, args))
    except PocketPromptError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        ctx.close()


if __name__ == "__main__":
    sys.exit(main())
