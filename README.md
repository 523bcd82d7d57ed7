# pbench

Command-line tools and a small library for preparing and analysing Presto
benchmarks.

- **genconfig** – turn `config.json` cluster descriptions into full sets of
  configuration files, rendered with Jinja2 from a template directory, with
  memory sizes derived from the node specification.
- **round** – round overly long decimal values in query output files so that
  results from different engines can be compared.
- **cmp** – pair up query output files from two directories by a file id and
  write a unified diff for each pair that differs.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Command line

Everything is reached through the `pbench` command:

```
pbench --help
pbench genconfig --help
pbench round --help
pbench cmp --help
```

The command exits with status 0 on success and 1 when a subcommand fails.
Progress and errors are written to standard error as JSON lines.

### Generating cluster configurations

```
pbench genconfig -t path/to/templates -p path/to/params.json clusters
```

`genconfig` walks the given directory recursively and reads every
`config.json` it finds. The keys it reads are `cluster_size`,
`worker_instance_type`, `number_of_workers`, `memory_per_node_gb`,
`vcpu_per_worker`, `spill_enabled`, `ssd_cache_size`, and optionally a
`generator_parameters` object that overrides single parameters for that
cluster. A `config.json` that cannot be read or parsed is logged and skipped.

The generator parameters file (`-p`) is a JSON object with the keys
`sys_reserved_mem_cap_gb`, `sys_reserved_mem_percent`,
`heap_size_percent_of_container_mem`, `headroom_percent_of_heap`,
`query_max_total_mem_per_node_percent_of_heap`,
`query_max_mem_per_node_percent_of_total`, `proxygen_mem_per_worker_gb`,
`proxygen_mem_cap_gb`, `native_buffer_mem_percent`,
`native_buffer_mem_cap_gb`, `native_query_mem_percent_of_sys_mem`,
`join_max_bcast_size_percent_of_container_mem` and
`memory_push_back_start_below_limit_gb`. Keys that are missing are taken as
zero; if no file is given, every parameter is zero.

From these the following values are derived for each cluster:
`container_memory_gb`, `heap_size_gb`, `headroom_gb`,
`java_query_max_total_mem_per_node_gb`, `java_query_max_mem_per_node_gb`,
`native_proxygen_mem_gb`, `native_buffer_mem_gb`, `native_system_mem_gb`,
`native_query_mem_gb` and `join_max_broadcast_table_size_mb`.

Every file under the template directory (`-t`, required) whose name does not
start with a dot is rendered once per cluster into the directory that holds
that cluster's `config.json`, keeping the template directory's layout.
Templates see every field of the cluster by name, the whole config as `cfg`,
and the helpers `dec(i)`, `add(a, b)`, `sub(a, b)`, `mul(a, b)` and
`seq(start, end)` (inclusive at both ends). Undefined names are errors; a
template that fails to parse or render is logged and skipped.

### Rounding decimals

```
pbench round -p 12 -f json -r results/
```

`round` splits each line into comma separated fields (quotes are respected;
in `json` format the surrounding `[` and `]` are stripped first). Columns of
the first row holding a decimal with more fractional digits than the
precision are marked, and those columns are truncated in every row. A file
with no such column in its first row is left alone; a later row with a
different number of columns is an error.

Options:

- `-p/--precision` – fractional digits to keep (default 12)
- `-e/--file-extension` – extension of files to process, including the dot;
  may be repeated (default `.output`)
- `-f/--format` – `json` (default) or `csv`; in `csv` the rounded value is
  written in double quotes
- `-i/--rewrite-in-place` – replace the original file; otherwise the result
  is written next to it with `.rewrite` before the extension
- `-r/--recursive` – descend into sub-directories

### Comparing result directories

```
pbench cmp -o ./diff run_a/ run_b/
```

`cmp` extracts a file id from the file names in both directories with the
first capture group of a regular expression (`-r/--file-id-regex`, default
`.*(query_\d{2}).*\.output`) and writes `<file id>.diff`, a unified diff,
into the output directory (`-o/--output-path`, default `./diff`) for each
pair of files whose contents differ. The totals are logged at the end.

## Library use

```python
from pbench.round import DecimalRounder, split_fields
from pbench.cmp import compare_directories
from pbench.genconfig import ClusterConfig, GeneratorParameters, run_genconfig
from pbench.replay_frame import QueryFrame

split_fields('"abc,d",1.22332,true')
# ['"abc,d"', '1.22332', 'true']

summary = DecimalRounder(precision=4, file_format="csv").run(["results"])
summary.files_scanned, summary.files_written

result = compare_directories("run_a", "run_b", "diff")
result.file_compared, result.diff_written

configs = run_genconfig("clusters", "templates", "params.json")

frame = QueryFrame.from_fields(csv_row)   # the nine fields of a workload CSV row
frame.parse_session_params()              # "{a=1, b=2}" -> {"a": "1", "b": "2"}
```

`QueryFrame.from_fields` expects `query_id`, `create_time` (for example
`2024-04-15 11:20:42.755 UTC`), `wall_time_millis`, `output_rows`,
`written_output_rows`, `catalog`, `schema`, `session_properties` and `query`;
`<<>>` in the query text becomes a newline.

### Logging

`pbench.logger.Logger` writes one JSON object per line (level, bound fields,
call fields, message) to a stream, standard error by default. `bind()`,
`with_level()` and `with_output()` return adjusted copies; `fatal()` raises
`FatalError` (exit status 1) unless `override_fatal` is set.
`get_logger()` and `set_global_logger()` manage the process-wide logger.

`pbench.marshal.Marshaller` turns arbitrary objects, mappings and sequences
into JSON-ready dictionaries and lists, limiting nesting depth and the number
of fields or elements shown; field names are converted with `to_snake_case`.

## What this package does not do

It does not connect to a Presto server: it cannot run benchmark stages,
replay a workload against a cluster, save table statistics or load query
JSON into a database. The workload CSV parsing in `pbench.replay_frame` only
reads queries; it does not send them. There are also no built-in templates
or default generator parameters for `genconfig`; both come from files you
supply.