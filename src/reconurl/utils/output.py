from __future__ import annotations

import json
import time
from typing import Any

from tabulate import tabulate


SCHEMA = "reconurl.cli.result/v1"


def normalize_errors(errors: list[Any] | None) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for e in errors or []:
        s = str(e).strip()
        if s and s not in seen:
            out.append(s)
            seen.add(s)
    return out


def build_cli_payload(
    *,
    command: str,
    version: str,
    target: str | None,
    started_at: float,
    data: Any,
    errors: list[Any] | None = None,
    ok: bool | None = None,
) -> dict[str, Any]:
    normalized_errors = normalize_errors(errors)
    resolved_ok = bool(ok) if ok is not None else (len(normalized_errors) == 0)
    return {
        "meta": {
            "tool": "reconurl",
            "version": version,
            "command": command,
            "schema": SCHEMA,
            "timestamp": int(time.time()),
            "duration_ms": int(round((time.perf_counter() - started_at) * 1000)),
        },
        "ok": resolved_ok,
        "target": target,
        "data": data,
        "errors": normalized_errors,
    }


def render_payload(payload: dict[str, Any], *, fmt: str = "json", pretty: bool = False) -> str:
    mode = (fmt or "json").strip().lower()
    if mode == "table":
        return _render_table(payload)
    return serialize_payload(payload, pretty=pretty)


def serialize_payload(payload: dict[str, Any], *, pretty: bool = False) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2 if pretty else None)


def _render_table(payload: dict[str, Any]) -> str:
    rows: list[tuple[str, str]] = []

    meta = payload.get("meta") if isinstance(payload.get("meta"), dict) else {}
    rows.append(("command", _safe_str(meta.get("command"))))
    rows.append(("version", _safe_str(meta.get("version"))))
    rows.append(("ok", _safe_str(payload.get("ok"))))
    rows.append(("target", _safe_str(payload.get("target"))))
    rows.append(("duration_ms", _safe_str(meta.get("duration_ms"))))

    command = str(meta.get("command") or "")
    rows.extend(_command_summary_rows(command, payload.get("data")))

    errors = payload.get("errors")
    if isinstance(errors, list):
        rows.append(("errors_count", str(len(errors))))
        for i, err in enumerate(errors[:3], start=1):
            rows.append((f"error_{i}", _safe_str(err, max_len=160)))

    return tabulate(rows, headers=["Field", "Value"], tablefmt="github")


def _command_summary_rows(command: str, data: Any) -> list[tuple[str, str]]:
    if not isinstance(data, dict):
        return []

    if command == "idb":
        results = data.get("results") if isinstance(data.get("results"), list) else []
        failed = [r for r in results if isinstance(r, dict) and r.get("error")]
        ports = sorted({r.get("port") for r in results if isinstance(r, dict) and r.get("port")})
        return [
            ("results", str(len(results))),
            ("failed", str(len(failed))),
            ("ports", _safe_str(ports)),
        ]

    if command in ("parse", "join", "merge"):
        if command == "merge":
            keys: tuple[str, ...] = ("relative",)
        else:
            keys = ("url", "scheme", "host", "path", "params", "fragment", "is_relative")
        rows = [(k, _safe_str(data.get(k))) for k in keys]
        for msg in data.get("diagnostics") or []:
            rows.append(("diagnostic", _safe_str(msg)))
        return rows

    out: list[tuple[str, str]] = []
    for k, v in data.items():
        if isinstance(v, (str, int, float, bool)) or v is None:
            out.append((str(k), _safe_str(v)))
    return out[:8]


def _safe_str(value: Any, *, max_len: int = 120) -> str:
    if isinstance(value, (dict, list)):
        s = json.dumps(value, ensure_ascii=False)
    else:
        s = "null" if value is None else str(value)
    if len(s) <= max_len:
        return s
    return s[: max_len - 3] + "..."
