#!/usr/bin/env python3
"""
Drives the stdio MCP server end-to-end.

Runs `python -m raworc_mcp` as a subprocess, sends JSON-RPC lines, and prints responses.
Exits non-zero if any request fails to get a response.

Usage:
  RAWORC_API_URL=... RAWORC_AUTH_TOKEN=... python scripts/mcp_stdio_driver.py [--mode basic|full] [--space NAME]

Mode "full" also calls health_check, get_version and list_sessions, which need a reachable API.
"""
import os
import sys
import json
import argparse
import select
import subprocess

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def send(p, obj):
    line = json.dumps(obj)
    p.stdin.write((line + "\n").encode("utf-8"))
    p.stdin.flush()


def read_line(p, timeout=5.0):
    r, _, _ = select.select([p.stdout], [], [], timeout)
    if not r:
        return None
    return p.stdout.readline().decode("utf-8").strip()


def call(p, id_, method, params=None):
    msg = {"jsonrpc": "2.0", "id": id_, "method": method}
    if params is not None:
        msg["params"] = params
    send(p, msg)
    ln = read_line(p)
    print(f"[stdio] {method}:", ln)
    return ln


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--mode", choices=["basic", "full"], default=os.environ.get("MODE", "basic"))
    ap.add_argument("--space", default=os.environ.get("RAWORC_DEFAULT_SPACE"))
    args = ap.parse_args()

    env = os.environ.copy()
    env["PYTHONPATH"] = REPO_ROOT + os.pathsep + env.get("PYTHONPATH", "")

    proc = subprocess.Popen(
        [sys.executable, "-m", "raworc_mcp"],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        env=env,
    )
    try:
        if not call(proc, 1, "initialize"):
            return 2
        if not call(proc, 2, "tools/list"):
            return 2
        if args.mode == "basic":
            return 0

        ok = True
        for i, (tool, arguments) in enumerate(
            [
                ("health_check", {}),
                ("get_version", {}),
                ("list_sessions", {"space": args.space} if args.space else {}),
            ],
            start=10,
        ):
            ln = call(proc, i, "tools/call", {"name": tool, "arguments": arguments})
            if not ln or "error" in json.loads(ln):
                ok = False
        return 0 if ok else 1
    finally:
        proc.stdin.close()
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.terminate()


if __name__ == "__main__":
    sys.exit(main())
