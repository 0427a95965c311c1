"""Constants used by symsize."""

__version__ = "1.2.0"

ENV_NM_PATH = "SYMSIZE_NM"
ENV_ADDR2LINE_PATH = "SYMSIZE_ADDR2LINE"
ENV_VERBOSE = "SYMSIZE_VERBOSE"
ENV_LOG_LEVEL = "SYMSIZE_LOG_LEVEL"

CONF_BINARY_PATH = "binary_path"
CONF_DUMP_TOOL_PATH = "dump_tool_path"
CONF_DUMP_FLAGS = "dump_flags"
CONF_LOCATION_TOOL_PATH = "location_tool_path"
CONF_RESOLVE_LOCATIONS = "resolve_locations"
CONF_USE_REGEX_FILTERING = "use_regex_filtering"
CONF_VERIFY_LOCATIONS = "verify_locations"
CONF_SHOW_TEXT = "show_text"
CONF_SHOW_DATA = "show_data"
CONF_NM_PATH = "nm_path"
CONF_ADDR2LINE_PATH = "addr2line_path"

# nm in BSD format: "<address> <size> <type> <name>", names demangled
DEFAULT_DUMP_FLAGS = ("--print-size", "--demangle")

DEFAULT_DUMP_TOOL = "nm"
DEFAULT_LOCATION_TOOL = "addr2line"

# Seconds to wait for a terminated tool before killing it
TOOL_TERMINATE_TIMEOUT = 2.0
LOCATION_TOOL_TIMEOUT = 30

# Longest stderr excerpt carried by ToolExecutionFailed
STDERR_EXCERPT_LIMIT = 2000

# Largest value an address or size field may hold
MAX_UINT64 = 0xFFFF_FFFF_FFFF_FFFF
