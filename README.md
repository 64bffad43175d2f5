# rctkit

A toolkit of small building blocks for event-driven applications and
command-line tools.

## What is inside

| Module              | Purpose                                                           |
|---------------------|-------------------------------------------------------------------|
| `rctkit.jsonitem`   | A mutable JSON tree (`JsonItem`, `JsonType`) and `create_*` helpers |
| `rctkit.jsonparse`  | `parse`, `parse_with_opts` and `minify`; errors raise `JsonParseError` |
| `rctkit.jsonprint`  | `print_json` (tab-indented) and `print_unformatted`               |
| `rctkit.date`       | `Date` with `DateMode` for UTC or local calendar fields           |
| `rctkit.timers`     | `TimerQueue` of single-shot and repeating timers, `TimerFlag`     |
| `rctkit.eventloop`  | `EventLoop` with posted calls, timers and socket callbacks        |
| `rctkit.fswatcher`  | `FileSystemWatcher` reporting added, removed and modified paths   |
| `rctkit.buffer`     | `Buffer` and `Buffers`, a byte queue read across chunks           |
| `rctkit.cpuusage`   | `CpuUsage` sampling of system idle time                           |
| `rctkit.config`     | `Config`, command-line options merged with rc files               |
| `rctkit.aes`        | `AES256CBC` encryption with a key derived by `derive_key`         |

## JSON trees

Objects keep their members in order, and member lookup ignores case.

```python
from rctkit.jsonitem import create_object, create_int_array
from rctkit.jsonparse import parse
from rctkit.jsonprint import print_json, print_unformatted

root = create_object()
root.add_string("name", "Jack")
root.add_number("width", 1920)
root.add_false("interlace")
root.add_to_object("ids", create_int_array([116, 943, 234]))

text = print_unformatted(root)
again = parse(text)
print(again.object_item("NAME"))     # case-insensitive lookup
print(len(again.object_item("ids")))
print(print_json(again))
```

`parse` raises `JsonParseError` when the text is not valid. Use
`parse_with_opts(text, True)` to reject trailing data after the value, and
`minify` to strip whitespace and comments from JSON text before parsing.

## Event loop and timers

`EventLoop` runs posted calls, due timers and socket callbacks until
`quit` is called or the timeout passed to `exec` runs out. The timer logic
lives in `TimerQueue`, which can also be driven directly with explicit
times, which is handy in tests.

## Watching files

`FileSystemWatcher` watches files and directories and batches changes:
a path removed and then added again is reported as modified, and a path
added and then removed is not reported at all. Removals can be delayed so
that editors that save by replacing a file are reported as a modification.

## Configuration

`Config` collects options registered with `register_option` and
`register_list_option`, reads rc files whose lines hold the same options
without their leading dashes, then parses the arguments. Bad values raise
`ConfigError`; `show_help` prints the option table.

## Running the tests

The test suite uses pytest and is included in the `test` extra.