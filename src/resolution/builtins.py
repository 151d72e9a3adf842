"""Node.js builtin module detection."""

from constants import Constants

NODE_BUILTIN_MODULES = frozenset([
    "assert", "async_hooks", "buffer", "child_process", "cluster", "console",
    "constants", "crypto", "dgram", "diagnostics_channel", "dns", "domain",
    "events", "fs", "http", "http2", "https", "inspector", "module", "net",
    "os", "path", "perf_hooks", "process", "punycode", "querystring",
    "readline", "repl", "stream", "string_decoder", "sys", "timers", "tls",
    "trace_events", "tty", "url", "util", "v8", "vm", "wasi",
    "worker_threads", "zlib",
])


def is_builtin_module(module_name: str) -> bool:
    """Return True for platform modules such as ``fs`` or ``node:fs/promises``."""
    if not isinstance(module_name, str):
        raise TypeError("Expected a string")

    if module_name.startswith(Constants.NODE_PROTOCOL):
        # node: prefixed imports are always builtins, even ones added later
        return True

    base = module_name.split("/", 1)[0]
    return base in NODE_BUILTIN_MODULES
