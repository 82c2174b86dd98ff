"""CLI entrypoints for endpointscope commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Iterable

import yaml

from .catalog import AuthFilter, CatalogQuery, CatalogView, SortMode, build_view
from .config import EngineSettings, default_config_path, resolve_config_path, template_content
from .engine import EndpointEngine
from .logging import configure_logging
from .models import Endpoint, EndpointListMetadata
from .project import load_project
from .scanners import STRATEGY_NAMES


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )


def _add_format_option(parser: argparse.ArgumentParser, *, default: str) -> None:
    parser.add_argument(
        "--format",
        choices=("json", "yaml", "text"),
        default=default,
        help="Output format.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="endpointscope",
        description="Discover HTTP endpoints declared in Kotlin/Java client code.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log warnings and errors.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write DEBUG logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="List discovered endpoints.")
    _add_verbose_option(scan_parser, suppress_default=True)
    _add_path_argument(scan_parser)
    _add_format_option(scan_parser, default="text")
    scan_parser.add_argument(
        "--strategy",
        action="append",
        choices=STRATEGY_NAMES,
        help="Restrict scanning to the named strategy (repeatable).",
    )
    scan_parser.add_argument(
        "--no-syntax-tree",
        action="store_true",
        help="Skip the tree-sitter pass even when tree-sitter is installed.",
    )
    scan_parser.add_argument("--query", default="", help="Only list endpoints matching this text.")
    scan_parser.add_argument("--method", help="Only list endpoints using this HTTP verb.")
    scan_parser.add_argument(
        "--auth",
        choices=[mode.value for mode in AuthFilter],
        default=AuthFilter.ANY.value,
        help="Only list endpoints with this Authorization requirement.",
    )
    scan_parser.add_argument(
        "--sort",
        choices=[mode.value for mode in SortMode if mode is not SortMode.RECENT],
        default=SortMode.SERVICE.value,
        help="Ordering of the listed endpoints.",
    )
    scan_parser.add_argument(
        "--group",
        action="store_true",
        help="Print endpoint counts per service instead of the endpoints.",
    )
    scan_parser.add_argument(
        "--metadata",
        action="store_true",
        help="Include auth, query and body badges for each endpoint.",
    )

    base_parser = subparsers.add_parser("base-url", help="Print the resolved project base URL.")
    _add_verbose_option(base_parser, suppress_default=True)
    _add_path_argument(base_parser)

    details_parser = subparsers.add_parser("details", help="Show details for one endpoint.")
    _add_verbose_option(details_parser, suppress_default=True)
    _add_path_argument(details_parser)
    _add_format_option(details_parser, default="json")
    details_parser.add_argument("--service", required=True, help="Owning service FQN.")
    details_parser.add_argument("--function", required=True, help="Function name.")
    details_parser.add_argument("--method", help="HTTP verb, when the function has several.")
    details_parser.add_argument("--path", dest="endpoint_path", help="Endpoint path to disambiguate.")

    init_parser = subparsers.add_parser(
        "init-config", help="Create a starter endpointscope.yaml in the project root."
    )
    _add_verbose_option(init_parser, suppress_default=True)
    _add_path_argument(init_parser)
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing override file.",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service (needs the service extra).")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for endpointscope commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), quiet=args.quiet, log_file=args.log_file)

    if args.command == "init-config":
        _init_config(parser, Path(args.path), force=bool(args.force))
        return
    if args.command == "serve":
        _serve(parser, args.host, args.port)
        return

    settings = EngineSettings()
    if getattr(args, "strategy", None):
        settings.strategies = list(args.strategy)
    if getattr(args, "no_syntax_tree", False):
        settings.use_syntax_tree = False
    engine = EndpointEngine(settings)

    try:
        project = load_project(
            args.path,
            max_file_bytes=settings.max_file_bytes,
            detail_cache_size=settings.detail_cache_size,
        )
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "scan":
        query = CatalogQuery(
            text=args.query,
            method=args.method,
            auth=AuthFilter(args.auth),
            sort=SortMode(args.sort),
        )
        view = build_view(
            engine.scan(project),
            query,
            list_metadata=lambda found: engine.list_metadata(project, found),
            include_metadata=bool(args.metadata),
        )
        print(_render_view(view, args.format, group=bool(args.group), metadata=bool(args.metadata)))
    elif args.command == "base-url":
        resolved = engine.resolve_base_url_with_source(project)
        if resolved.url is None:
            parser.exit(1, "No base URL found\n")
        print(f"{resolved.url} ({resolved.source.value})")
    elif args.command == "details":
        endpoints = engine.scan(project)
        try:
            endpoint = engine.find_endpoint(
                endpoints,
                service=args.service,
                function=args.function,
                method=args.method,
                path=args.endpoint_path,
            )
        except LookupError as exc:
            parser.exit(1, f"{exc.args[0]}\n")
        details = engine.resolve_details(project, endpoint)
        payload = {"endpoint": endpoint.to_dict(), "details": details.to_dict()}
        print(_render_mapping(payload, args.format))
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _init_config(parser: argparse.ArgumentParser, root: Path, *, force: bool) -> None:
    root = root.expanduser().resolve()
    if not root.is_dir():
        parser.exit(1, f"Project path is not a directory: {root}\n")
    existing = resolve_config_path(root)
    if existing is not None and not force:
        parser.exit(1, f"Override file already exists at {_relativize(existing)}\n")
    target = existing or default_config_path(root)
    target.write_text(template_content(), encoding="utf-8")
    print(f"Override file written to {_relativize(target)}")


def _serve(parser: argparse.ArgumentParser, host: str, port: int) -> None:
    from .service import run_service

    try:
        run_service(host=host, port=port)
    except RuntimeError as exc:
        parser.exit(1, f"{exc}\n")


def _render_view(view: CatalogView, fmt: str, *, group: bool, metadata: bool) -> str:
    if group:
        if fmt == "text":
            lines = [f"{service}  {count}" for service, count in view.groups.items()]
            lines.append(f"Found {len(view.endpoints)} endpoints in {len(view.groups)} services")
            return "\n".join(lines)
        return _render_mapping(view.groups, fmt)
    if fmt == "text":
        lines = [_endpoint_line(endpoint, view.metadata_for(endpoint)) for endpoint in view.endpoints]
        lines.append(f"Found {len(view.endpoints)} endpoints")
        return "\n".join(lines)
    entries = []
    for endpoint in view.endpoints:
        entry = endpoint.to_dict()
        if metadata:
            found = view.metadata_for(endpoint)
            entry["metadata"] = found.to_dict() if found else None
        entries.append(entry)
    return _render_mapping(entries, fmt)


def _endpoint_line(endpoint: Endpoint, metadata: EndpointListMetadata | None = None) -> str:
    target = f"{endpoint.base_url or ''}{endpoint.path}"
    line = f"{endpoint.http_method:<7} {target}  {endpoint.service_fqn}#{endpoint.function_name}"
    if metadata is None:
        return line
    return f"{line}  {_badges(metadata)}"


def _badges(metadata: EndpointListMetadata) -> str:
    badges = []
    if metadata.auth_requirement is not None:
        badges.append(f"auth:{metadata.auth_requirement.value}")
    if metadata.query_count:
        badges.append(f"query:{metadata.query_count}")
    if metadata.has_multipart:
        badges.append("multipart")
    if metadata.has_form_fields:
        badges.append("form")
    if not metadata.base_url_resolved:
        badges.append("no-base-url")
    if metadata.partial:
        badges.append("partial")
    return f"[{' '.join(badges)}]"


def _render_mapping(payload: Any, fmt: str) -> str:
    if fmt == "yaml":
        return yaml.safe_dump(payload, sort_keys=False).rstrip("\n")
    if fmt == "text" and isinstance(payload, dict):
        return "\n".join(_text_lines(payload))
    return json.dumps(payload, indent=2)


def _text_lines(payload: dict, indent: str = "") -> Iterable[str]:
    for key, value in payload.items():
        if isinstance(value, dict):
            yield f"{indent}{key}:"
            yield from _text_lines(value, indent + "  ")
        elif isinstance(value, list):
            yield f"{indent}{key}: {', '.join(str(item) for item in value) or '-'}"
        else:
            yield f"{indent}{key}: {value}"


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
