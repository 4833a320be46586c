# riptools

riptools lets an agent run tools. It gives you:

- `ToolRegistry`, a table of async tool handlers. A handler can be registered under
  its own name and under aliases.
- `ToolRunner`, which runs one `ToolInvocation` at a time per permit, enforces
  per-call timeouts and returns the events of the run. The events are
  `ToolStarted`, `ToolStdout`, `ToolStderr`, `ToolEnded` and `ToolFailed`. Each event
  carries a session id, a timestamp and a sequence number.
- An optional `CheckpointHook`. Before a `write` tool call the runner creates a
  checkpoint automatically and emits `CheckpointCreated` or `CheckpointFailed`.
  You can also create and rewind checkpoints yourself with
  `ToolRunner.create_checkpoint` and `ToolRunner.rewind_checkpoint`.
- Built-in tools: `read`, `write`, `ls`, `grep`, and `bash` (also reachable as
  `shell`). Every path these tools take is confined to a workspace root.
- `Workspace`, which stores file snapshots under `.rip/checkpoints/` in a
  workspace. It can list them and restore them. If a restore fails partway, the
  earlier state is put back.

## Install

```
pip install riptools
```

## Running tools

```python
import asyncio

from riptools.builtins.common import BuiltinToolConfig
from riptools.builtins.registration import register_builtin_tools
from riptools.events import Sequence
from riptools.runtime import ToolInvocation, ToolRegistry, ToolRunner


async def main():
    registry = ToolRegistry()
    register_builtin_tools(registry, BuiltinToolConfig(workspace_root="."))
    runner = ToolRunner(registry, max_concurrency=2)

    seq = Sequence()
    events = await runner.run(
        "session-1",
        seq,
        ToolInvocation(name="grep", args={"pattern": "TODO", "path": "."}),
    )
    for event in events:
        print(event.seq, event.kind)


asyncio.run(main())
```

A tool reports its result as a `ToolOutput`, which holds stdout lines, stderr lines,
an exit code and optional artifacts. The exit code is `0` on success, `1` on
failure and `2` for invalid arguments.

## Checkpoints

```python
from riptools.workspace import Workspace

workspace = Workspace(".")
checkpoint = workspace.create_checkpoint("session-1", "before edit", ["notes.txt"])
# ... change notes.txt ...
workspace.rewind_to_checkpoint("session-1", checkpoint.id)
print([cp.label for cp in workspace.list_checkpoints("session-1")])
```

To let the runner checkpoint files automatically, implement `CheckpointHook`, for
example on top of `Workspace`. Then pass it to `ToolRunner(registry, 1, checkpoint_hook=hook)`.

## Tests

```
pip install "riptools[test]"
pytest
```