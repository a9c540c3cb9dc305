"""
Command-line interface for toolgate.

  toolgate tools                         list the built-in tools
  toolgate classify "rm -rf build"       show a command's danger level
  toolgate call read_file --params '{"uri": "README.md"}' --workspace .

`call` runs one tool through the full gateway and prints the text the model
would see. The exit status is 0 when the tool succeeded and 1 otherwise.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from toolgate.config import GatewayConfig
from toolgate.danger import classify
from toolgate.events import EventLog
from toolgate.gateway import ToolGateway
from toolgate.schemas import TOOL_SCHEMAS
from toolgate.types import ToolName, ToolResult
from toolgate.workspace import Workspace

logger = logging.getLogger(__name__)


def list_tools() -> str:
    lines = []
    for name in ToolName:
        schema = TOOL_SCHEMAS[name]
        approval = schema.approval_type.value if schema.approval_type else "-"
        params = schema.required_params + [f"{p}?" for p in schema.optional_params]
        lines.append(f"{name.value:26} {approval:9} {', '.join(params)}")
    return "\n".join(lines)


async def run_call(
    tool_name: str,
    raw_params: dict,
    roots: list[str],
    build_index: bool = False,
    events_out: Path | None = None,
) -> ToolResult:
    workspace = Workspace(roots) if roots else Workspace.from_cwd()
    if events_out is not None:
        events_out.write_text("", encoding="utf-8")
    event_log = EventLog(sink_path=events_out)
    async with ToolGateway(workspace, GatewayConfig.from_env(), event_log=event_log) as gateway:
        if build_index:
            await gateway.build_index()
        result = await gateway.call(tool_name, raw_params)
    trace = event_log.trace(result.tool_call_id)
    if trace is not None:
        logger.info(trace.summary())
    return result


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for toolgate."""
    parser = argparse.ArgumentParser(description="Validate, run and serialize LLM tool calls")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # tools command
    subparsers.add_parser("tools", help="List the built-in tools")

    # classify command
    classify_parser = subparsers.add_parser("classify", help="Classify a shell command's danger level")
    classify_parser.add_argument("shell_command", help="The command to classify")

    # call command
    call_parser = subparsers.add_parser("call", help="Run one tool call")
    call_parser.add_argument("tool", help="Tool name, e.g. read_file")
    call_parser.add_argument("--params", default="{}", help="Raw parameters as a JSON object")
    call_parser.add_argument("--workspace", action="append", default=[],
                             help="Workspace root (repeatable, default: current directory)")
    call_parser.add_argument("--index", action="store_true",
                             help="Build the keyword index before running the call")
    call_parser.add_argument("--events-out", type=Path, help="Stream the event log here as JSON lines")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "tools":
        print(list_tools())
        return 0
    if args.command == "classify":
        print(classify(args.shell_command).value)
        return 0
    if args.command == "call":
        try:
            raw_params = json.loads(args.params)
        except json.JSONDecodeError as e:
            print(f"--params is not valid JSON: {e}", file=sys.stderr)
            return 2
        result = asyncio.run(
            run_call(args.tool, raw_params, args.workspace, args.index, args.events_out)
        )
        print(result.content)
        return 0 if result.success else 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
