import regex

# config file line grammar, matched one physical line at a time
BLANK = regex.compile(r"^\s*$")
COMMENT = regex.compile(r"^\s*[;#]")
SECTION = regex.compile(r"^\[(?P<name>[^\[\]]+)\]\s*$")
# key can't start with whitespace, a bracket or a delimiter
OPTION = regex.compile(r"^(?P<key>[^\s\[=:][^=:]*?)\s*[=:]\s?(?P<value>.*)$")
# continuation of a multi-line value, must be indented
CONTINUATION = regex.compile(r"^[ \t]+(?P<value>\S.*)$")

# optional "ms" suffix on load delay input, e.g. "5000ms"
DELAY_INPUT = regex.compile(r"(?i)^\s*(?P<digits>[+-]?\d+)\s*(?:ms)?\s*$")

# Valve KeyValue (libraryfolders.vdf): "path" inside any "<digit>" block
VDF_LIBRARY_PATH = regex.compile(r'"\d+"\s*\{\s*[^}]*?"path"\s*?"(?P<path>[^"]+)"', regex.DOTALL)

# "file.dll.disabled" -> "file.dll"
OFF_STATE = regex.compile(r"(?i)\.disabled$")
