from proxy_bench.config.errors import ConfigurationError
from proxy_bench.config.io import load_json_file, load_simple_yaml, read_text_lines
from proxy_bench.config.schema import (
    BenchConfig,
    HostInfo,
    RunMetadata,
    bench_config_from_mapping,
    collect_host_info,
    compute_input_digests,
    create_run_metadata,
    generate_run_id,
    load_bench_config,
    write_run_metadata,
)

__all__ = [
    "BenchConfig",
    "ConfigurationError",
    "HostInfo",
    "RunMetadata",
    "bench_config_from_mapping",
    "collect_host_info",
    "compute_input_digests",
    "create_run_metadata",
    "generate_run_id",
    "load_bench_config",
    "load_json_file",
    "load_simple_yaml",
    "read_text_lines",
    "write_run_metadata",
]
