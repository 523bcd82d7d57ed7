"""Generate benchmark cluster configuration files from templates.

Every ``config.json`` found under a directory describes one cluster. Memory
settings are derived from it with a set of generator parameters, and each
template file is rendered once per cluster into the directory holding that
cluster's ``config.json``, keeping the template directory's layout.
"""

from __future__ import annotations

import dataclasses
import json
import math
import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import jinja2

from pbench.logger import get_logger

CONFIG_JSON = "config.json"


def _reject(key: str, value: Any, expected: str) -> ValueError:
    return ValueError(f"field {key!r}: expected {expected}, got {value!r}")


def _as_float(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _reject(key, value, "a number")
    return float(value)


def _as_uint(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise _reject(key, value, "a non-negative integer")
    return value


def _as_str(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise _reject(key, value, "a string")
    return value


def _as_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise _reject(key, value, "a boolean")
    return value


@dataclass
class GeneratorParameters:
    """Ratios and caps used to derive memory settings from a cluster spec."""

    sys_reserved_mem_cap_gb: float = 0.0
    sys_reserved_mem_percent: float = 0.0
    heap_size_percent_of_container_mem: float = 0.0
    headroom_percent_of_heap: float = 0.0
    query_max_total_mem_per_node_percent_of_heap: float = 0.0
    query_max_mem_per_node_percent_of_total: float = 0.0
    proxygen_mem_per_worker_gb: float = 0.0
    proxygen_mem_cap_gb: float = 0.0
    native_buffer_mem_percent: float = 0.0
    native_buffer_mem_cap_gb: float = 0.0
    native_query_mem_percent_of_sys_mem: float = 0.0
    join_max_bcast_size_percent_of_container_mem: float = 0.0
    memory_push_back_start_below_limit_gb: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GeneratorParameters:
        """Read parameters from their JSON keys; unknown keys are ignored, missing ones are zero."""
        if not isinstance(data, Mapping):
            raise ValueError("generator parameters must be a JSON object")
        values: dict[str, Any] = {}
        for f in dataclasses.fields(cls):
            value = data.get(f.name)
            if value is None:
                continue
            if f.name == "memory_push_back_start_below_limit_gb":
                values[f.name] = _as_uint(f.name, value)
            else:
                values[f.name] = _as_float(f.name, value)
        return cls(**values)


def load_generator_parameters(path: str) -> GeneratorParameters:
    """Read generator parameters from a JSON file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return GeneratorParameters.from_dict(data)


# JSON key -> (attribute, converter)
_CLUSTER_KEYS = {
    "cluster_size": ("name", _as_str),
    "worker_instance_type": ("worker_instance_type", _as_str),
    "number_of_workers": ("number_of_workers", _as_uint),
    "memory_per_node_gb": ("memory_per_node_gb", _as_uint),
    "vcpu_per_worker": ("vcpu_per_worker", _as_uint),
    "spill_enabled": ("spill_enabled", _as_bool),
    "ssd_cache_size": ("ssd_cache_size", _as_uint),
}


@dataclass
class ClusterConfig:
    """A cluster spec read from config.json, plus the settings derived from it."""

    name: str = ""
    worker_instance_type: str = ""
    number_of_workers: int = 0
    memory_per_node_gb: int = 0
    vcpu_per_worker: int = 0
    spill_enabled: bool = False
    ssd_cache_size: int = 0
    generator_parameters: GeneratorParameters = field(default_factory=GeneratorParameters)
    container_memory_gb: int = 0
    headroom_gb: int = 0
    heap_size_gb: int = 0
    java_query_max_total_mem_per_node_gb: int = 0
    java_query_max_mem_per_node_gb: int = 0
    native_system_mem_gb: int = 0
    native_proxygen_mem_gb: int = 0
    native_buffer_mem_gb: int = 0
    native_query_mem_gb: int = 0
    join_max_broadcast_table_size_mb: int = 0
    path: str = ""

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        params: Optional[GeneratorParameters] = None,
        path: str = "",
    ) -> ClusterConfig:
        """Build a config from config.json content; its own generator_parameters override params."""
        if not isinstance(data, Mapping):
            raise ValueError("cluster config must be a JSON object")
        params = params if params is not None else GeneratorParameters()
        values: dict[str, Any] = {}
        for key, (attr, convert) in _CLUSTER_KEYS.items():
            value = data.get(key)
            if value is not None:
                values[attr] = convert(key, value)
        overrides = data.get("generator_parameters")
        if overrides is not None:
            if not isinstance(overrides, Mapping):
                raise _reject("generator_parameters", overrides, "a JSON object")
            params = GeneratorParameters.from_dict(
                {**dataclasses.asdict(params), **overrides}
            )
        return cls(generator_parameters=params, path=path, **values)

    def calculate(self) -> None:
        """Derive the memory settings from the spec and the generator parameters."""
        p = self.generator_parameters
        self.container_memory_gb = self.memory_per_node_gb - math.ceil(
            min(p.sys_reserved_mem_cap_gb, self.memory_per_node_gb * p.sys_reserved_mem_percent)
        )
        self.heap_size_gb = math.floor(
            self.container_memory_gb * p.heap_size_percent_of_container_mem
        )
        self.headroom_gb = math.ceil(self.heap_size_gb * p.headroom_percent_of_heap)
        self.java_query_max_total_mem_per_node_gb = math.floor(
            self.heap_size_gb * p.query_max_total_mem_per_node_percent_of_heap
        )
        self.java_query_max_mem_per_node_gb = math.floor(
            self.java_query_max_total_mem_per_node_gb * p.query_max_mem_per_node_percent_of_total
        )
        self.native_proxygen_mem_gb = math.ceil(
            min(p.proxygen_mem_cap_gb, p.proxygen_mem_per_worker_gb * self.number_of_workers)
        )
        self.native_buffer_mem_gb = math.ceil(
            min(p.native_buffer_mem_cap_gb, self.container_memory_gb * p.native_buffer_mem_percent)
        )
        self.native_system_mem_gb = (
            self.container_memory_gb - self.native_buffer_mem_gb - self.native_proxygen_mem_gb
        )
        self.native_query_mem_gb = math.floor(
            self.native_system_mem_gb * p.native_query_mem_percent_of_sys_mem
        )
        self.join_max_broadcast_table_size_mb = math.ceil(
            self.container_memory_gb * p.join_max_bcast_size_percent_of_container_mem * 1024
        )


def _walk(root: str) -> Iterator[str]:
    """Yield every path under root in lexical order, root first."""
    yield root
    if os.path.isdir(root):
        for name in sorted(os.listdir(root)):
            yield from _walk(os.path.join(root, name))


def find_cluster_configs(
    root: str, params: Optional[GeneratorParameters] = None
) -> list[ClusterConfig]:
    """Read and calculate every config.json under root; unreadable ones are logged and skipped."""
    log = get_logger()
    params = params if params is not None else GeneratorParameters()
    configs: list[ClusterConfig] = []
    try:
        os.stat(root)
        for path in _walk(root):
            if os.path.isdir(path) or os.path.basename(path) != CONFIG_JSON:
                continue
            try:
                with open(path, encoding="utf-8") as f:
                    text = f.read()
            except OSError as exc:
                log.error("failed to read config file.", error=exc, path=path)
                continue
            try:
                cfg = ClusterConfig.from_dict(
                    json.loads(text), params, os.path.dirname(path)
                )
            except ValueError as exc:
                log.error("failed to parse config file.", error=exc, path=path)
                continue
            log.info("parsed configuration", path=path)
            cfg.calculate()
            configs.append(cfg)
    except OSError as exc:
        log.error(error=exc)
    return configs


def _seq(start: int, end: int) -> range:
    return range(start, end + 1)


def _environment(template_dir: str) -> jinja2.Environment:
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(template_dir),
        keep_trailing_newline=True,
        undefined=jinja2.StrictUndefined,
        autoescape=False,
    )
    env.globals.update(
        dec=lambda i: i - 1,
        mul=lambda a, b: a * b,
        add=lambda a, b: a + b,
        sub=lambda a, b: a - b,
        seq=_seq,
    )
    return env


def _template_context(cfg: ClusterConfig) -> dict[str, Any]:
    context = {f.name: getattr(cfg, f.name) for f in dataclasses.fields(cfg)}
    context["cfg"] = cfg
    return context


def generate_files(configs: list[ClusterConfig], template_dir: str) -> list[str]:
    """Render every template file for every config; return the paths written.

    Files whose names start with a dot are skipped. A template that fails to
    parse or render is logged and skipped.
    """
    log = get_logger()
    env = _environment(template_dir)
    written: list[str] = []
    try:
        os.stat(template_dir)
        template_paths = [
            p
            for p in _walk(template_dir)
            if not os.path.isdir(p) and not os.path.basename(p).startswith(".")
        ]
    except OSError as exc:
        log.error(error=exc, path=template_dir)
        return written
    for template_path in template_paths:
        rel = os.path.relpath(template_path, template_dir)
        try:
            template = env.get_template(rel.replace(os.sep, "/"))
        except jinja2.TemplateError as exc:
            log.error("failed to parse template", error=exc, path=template_path)
            continue
        for cfg in configs:
            output_path = os.path.join(cfg.path, rel)
            try:
                os.makedirs(os.path.dirname(output_path), exist_ok=True)
            except OSError as exc:
                log.error(
                    "failed to create directory",
                    error=exc,
                    path=os.path.dirname(output_path),
                )
                break
            try:
                content = template.render(_template_context(cfg))
            except (jinja2.TemplateError, ArithmeticError, TypeError, ValueError) as exc:
                log.error("failed to evaluate template", error=exc, output_path=output_path)
                continue
            try:
                with open(output_path, "w", encoding="utf-8", newline="") as out:
                    out.write(content)
            except OSError as exc:
                log.error("failed to create file", error=exc, output_path=output_path)
                continue
            log.info(f"wrote {output_path}")
            written.append(output_path)
    return written


def run_genconfig(
    root: str, template_dir: Optional[str], parameter_path: Optional[str] = None
) -> list[ClusterConfig]:
    """Find the cluster configs under root and render the templates for each of them."""
    if not template_dir:
        raise ValueError("a template directory is required")
    log = get_logger()
    params = GeneratorParameters()
    if parameter_path:
        try:
            params = load_generator_parameters(parameter_path)
        except OSError as exc:
            log.error(
                "failed to read generator parameter file",
                error=exc,
                parameter_path=parameter_path,
            )
        except ValueError as exc:
            log.error(
                "failed to unmarshal generator parameter file",
                error=exc,
                parameter_path=parameter_path,
            )
    configs = find_cluster_configs(root, params)
    generate_files(configs, template_dir)
    return configs