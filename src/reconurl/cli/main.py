from __future__ import annotations

import argparse
import time
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Callable

from reconurl.agents.shodanidb import INTERNETDB_URL, ShodanIDBAgent
from reconurl.core.errors import URLParseError
from reconurl.core.http_client import HttpClient
from reconurl.core.urlutil import ParserConfig, auto_merge_rel_paths, parse_url
from reconurl.utils.logging import DEFAULT_LOG_FILE, collect_diagnostics, configure_logging, get_logger
from reconurl.utils.output import build_cli_payload, normalize_errors, render_payload, serialize_payload


class CliUsageError(Exception):
    pass


def _get_version() -> str:
    try:
        return version("reconurl")
    except PackageNotFoundError:
        return "0.0.0"


def _parser_config(args: argparse.Namespace) -> ParserConfig:
    return ParserConfig(autocorrect=not bool(getattr(args, "no_autocorrect", False)))


def _with_diagnostics(runner: Callable[[], dict[str, Any]]) -> dict[str, Any]:
    with collect_diagnostics() as collector:
        data = runner()
    data["diagnostics"] = collector.messages()
    return data


def _extract_errors_from_obj(obj: Any) -> list[str]:
    if not isinstance(obj, dict):
        return []

    out: list[str] = []
    e = obj.get("error")
    if isinstance(e, str) and e.strip():
        out.append(e.strip())

    results = obj.get("results")
    if isinstance(results, list):
        for r in results:
            if isinstance(r, dict) and isinstance(r.get("error"), str):
                out.append(f"{r.get('ip')}: {r['error']}")
    return normalize_errors(out)


def _resolve_ok(data: Any, errors: list[str]) -> bool:
    if isinstance(data, dict) and isinstance(data.get("ok"), bool):
        return bool(data["ok"]) and len(errors) == 0
    return len(errors) == 0


def _configure_runtime_logging(args: argparse.Namespace) -> None:
    enable_file = not bool(getattr(args, "no_log_file", False))
    file_path = configure_logging(
        level=str(getattr(args, "log_level", "WARNING")),
        log_file=str(getattr(args, "log_file", DEFAULT_LOG_FILE)),
        enable_file=enable_file,
    )
    logger = get_logger(__name__)
    if file_path:
        logger.debug("log file enabled: %s", file_path)
    else:
        logger.debug("log file disabled")


def _emit_payload(args: argparse.Namespace, payload: dict[str, Any]) -> None:
    path = getattr(args, "output", None)
    if path:
        text = serialize_payload(payload, pretty=bool(getattr(args, "pretty", False)))
        Path(path).write_text(text, encoding="utf-8")
        return

    text = render_payload(
        payload,
        fmt=str(getattr(args, "format", "json")),
        pretty=bool(getattr(args, "pretty", False)),
    )
    print(text)


def _run_command(
    args: argparse.Namespace,
    *,
    command: str,
    target: str | None,
    runner: Callable[[], Any],
    error_extractor: Callable[[Any], list[str]] = _extract_errors_from_obj,
    ok_resolver: Callable[[Any, list[str]], bool] = _resolve_ok,
) -> int:
    _configure_runtime_logging(args)
    logger = get_logger(f"{__name__}.{command}")
    started = time.perf_counter()
    cli_version = _get_version()

    try:
        logger.info("command start: %s target=%s", command, target)
        data = runner()
        errors = normalize_errors(error_extractor(data))
        ok = ok_resolver(data, errors)
        payload = build_cli_payload(
            command=command,
            version=cli_version,
            target=target,
            started_at=started,
            data=data,
            errors=errors,
            ok=ok,
        )
        logger.info("command done: %s ok=%s errors=%d", command, ok, len(errors))
        _emit_payload(args, payload)
        return 0 if ok else 1
    except CliUsageError as e:
        logger.error("usage error: %s", e)
        payload = build_cli_payload(
            command=command,
            version=cli_version,
            target=target,
            started_at=started,
            data=None,
            errors=[str(e)],
            ok=False,
        )
        print(render_payload(payload, fmt="json", pretty=True))
        return 2
    except URLParseError as e:
        logger.error("parse error: %s", e)
        payload = build_cli_payload(
            command=command,
            version=cli_version,
            target=target,
            started_at=started,
            data=None,
            errors=[f"{type(e).__name__}: {e}"],
            ok=False,
        )
        _emit_payload(args, payload)
        return 1
    except Exception as e:
        logger.exception("command failed: %s", command)
        payload = build_cli_payload(
            command=command,
            version=cli_version,
            target=target,
            started_at=started,
            data=None,
            errors=[f"{type(e).__name__}: {e}"],
            ok=False,
        )
        print(render_payload(payload, fmt="json", pretty=True))
        return 1


def _add_runtime_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=("json", "table"),
        default="json",
        help="Result display format (default: json)",
    )
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        default="WARNING",
        help="Console log level (default: WARNING)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=str(DEFAULT_LOG_FILE),
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Disable file logging and only log to console",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Write structured result JSON to file",
    )


def _add_parser_options(parser: argparse.ArgumentParser, *, allow_unsafe: bool = True) -> None:
    if allow_unsafe:
        parser.add_argument(
            "--unsafe",
            action="store_true",
            help="Accept malformed input as a raw path instead of failing",
        )
    parser.add_argument(
        "--no-autocorrect",
        action="store_true",
        help="Keep bare words such as 'admin' as hosts instead of relative paths",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reconurl",
        description="reconurl: lenient URL parsing and merging for recon tooling",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_get_version()}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser("parse", help="Parse a URL, relative path or bare token")
    parse_cmd.add_argument("-u", "--url", required=True, help="Input URL, path or host")
    _add_parser_options(parse_cmd)
    _add_runtime_options(parse_cmd)

    def _parse_cmd(args: argparse.Namespace) -> int:
        return _run_command(
            args,
            command="parse",
            target=args.url,
            runner=lambda: _with_diagnostics(
                lambda: parse_url(args.url, bool(args.unsafe), config=_parser_config(args)).to_dict()
            ),
        )

    parse_cmd.set_defaults(func=_parse_cmd)

    join = subparsers.add_parser("join", help="Merge a relative path (with query/fragment) into a URL")
    join.add_argument("-u", "--url", required=True, help="Base URL")
    join.add_argument("-p", "--path", required=True, help="Relative path to merge")
    join.add_argument("--port", type=str, default=None, help="Replace or set the port of the result")
    _add_parser_options(join)
    _add_runtime_options(join)

    def _join_cmd(args: argparse.Namespace) -> int:
        def _runner() -> dict[str, Any]:
            config = _parser_config(args)
            u = parse_url(args.url, bool(args.unsafe), config=config)
            u.merge_path(args.path, bool(args.unsafe))
            if args.port:
                if u.is_relative:
                    raise CliUsageError("--port requires an absolute base URL")
                u.update_port(args.port)
            u.resync()
            return u.to_dict()

        return _run_command(args, command="join", target=args.url, runner=lambda: _with_diagnostics(_runner))

    join.set_defaults(func=_join_cmd)

    merge = subparsers.add_parser("merge", help="Merge two relative paths including parameters")
    merge.add_argument("first", help="First relative path, ex: /blog?x=1")
    merge.add_argument("second", help="Second relative path, ex: /admin?y=2")
    _add_runtime_options(merge)

    def _merge_cmd(args: argparse.Namespace) -> int:
        return _run_command(
            args,
            command="merge",
            target=args.first,
            runner=lambda: _with_diagnostics(lambda: {"relative": auto_merge_rel_paths(args.first, args.second)}),
        )

    merge.set_defaults(func=_merge_cmd)

    idb = subparsers.add_parser("idb", help="Query Shodan InternetDB for an IP or CIDR")
    idb.add_argument("-q", "--query", required=True, help="IP address or CIDR")
    idb.add_argument("--base-url", type=str, default=INTERNETDB_URL, help=f"API base URL (default: {INTERNETDB_URL})")
    idb.add_argument("--timeout", type=float, default=10.0, help="HTTP timeout in seconds (default: 10.0)")
    idb.add_argument("--insecure", action="store_true", help="Disable TLS cert verification (default: false)")
    idb.add_argument("--retries", type=int, default=0, help="Retry count on network errors (default: 0)")
    idb.add_argument(
        "--rate-limit-ms",
        type=int,
        default=0,
        help="Min interval between requests in ms (default: 0)",
    )
    idb.add_argument("--proxy", type=str, default=None, help="HTTP(S) proxy URL (optional)")
    _add_runtime_options(idb)

    def _idb_cmd(args: argparse.Namespace) -> int:
        def _runner() -> dict[str, Any]:
            with HttpClient(
                timeout=args.timeout,
                verify_tls=not args.insecure,
                retries=args.retries,
                min_interval_ms=args.rate_limit_ms,
                proxy=args.proxy,
            ) as client:
                agent = ShodanIDBAgent(client=client, base_url=args.base_url)
                try:
                    results = agent.query(args.query)
                except ValueError as e:
                    raise CliUsageError(str(e)) from e
                return {
                    "source": agent.name,
                    "query": args.query,
                    "results": [r.to_dict() for r in results],
                }

        return _run_command(args, command="idb", target=args.query, runner=_runner)

    idb.set_defaults(func=_idb_cmd)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
