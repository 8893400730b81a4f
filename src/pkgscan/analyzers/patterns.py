"""Static detection rules: suspicious script indicators, version grammar and blocklists.

Everything in this module is immutable after import.
"""

import re

PATTERN_LIBRARY_VERSION = "2024.1"

# === Script indicators ===

# Regex fragments matched anywhere in a script body, case-insensitively.
# Deliberately broad: short tokens such as "sh", "nc" or "get" also match inside
# longer words. A missed backdoor costs more than a noisy warning.
SCRIPT_INDICATORS = (
    # Remote fetch
    "curl",
    "wget",
    # Destructive / encoding
    "rm -rf",
    "base64",
    # Dynamic evaluation and timers
    "eval",
    "exec",
    "setTimeout",
    "setInterval",
    # Filesystem and process spawning
    "fs.writeFileSync",
    "child_process",
    # Raw sockets
    "netcat",
    "nc",
    # Interpreters
    "bash",
    "sh",
    "powershell",
    "python",
    "perl",
    "node",
    "java",
    "lua",
    "ruby",
    "php",
    # Crypto / environment
    "openssl",
    "env",
    "ncat",
    "socat",
    "reverse shell",
    "crypto",
    "dns",
    # Outbound HTTP
    "http",
    "get",
    "post",
    "fetch",
    "axios",
    "request",
    "XMLHttpRequest",
    "document.write",
)

SUSPICIOUS_SCRIPT_PATTERN = re.compile("|".join(SCRIPT_INDICATORS), re.IGNORECASE)

_INDICATOR_PATTERNS = tuple(
    (indicator, re.compile(indicator, re.IGNORECASE)) for indicator in SCRIPT_INDICATORS
)


def matched_indicators(command: str) -> list[str]:
    """Return every indicator that occurs in a script body, in library order."""
    return [indicator for indicator, pattern in _INDICATOR_PATTERNS if pattern.search(command)]


# === Version grammar ===

# ASCII digits only; callers must use fullmatch()
EXACT_VERSION_PATTERN = re.compile(r"[0-9]+\.[0-9]+\.[0-9]+")
RANGE_VERSION_PATTERN = re.compile(r"[~^][0-9]+\.[0-9]+\.[0-9]+")


# === Blocklists ===

# Known-malicious npm package names: typosquats from the 2017 crossenv
# campaign, later credential stealers, and packages flagged for shell access.
NPM_BLOCKLIST = frozenset({
    "babelcli",
    "crossenv",
    "cross-env.js",
    "d3.js",
    "discord.dll",
    "electorn",
    "fabric-js",
    "ffmepg",
    "getcookies",
    "gruntcli",
    "http-proxy.js",
    "jquery.js",
    "loadyaml",
    "lodashs",
    "mongose",
    "mssql-node",
    "mssql.js",
    "mysqljs",
    "node-fabric",
    "node-opencv",
    "node-opensl",
    "node-openssl",
    "node-sqlite",
    "node-tkinter",
    "nodecaffe",
    "nodefabric",
    "nodeffmpeg",
    "nodemailer-js",
    "nodemailer.js",
    "nodemssql",
    "noderequest",
    "nodesass",
    "nodesqlite",
    "opencv.js",
    "openssl.js",
    "proxy.js",
    "shadowsock",
    "shelljs",
    "sqlite.js",
    "sqliter",
    "sqlserver",
    "tkinter",
    "twilio-npm",
})

# Hand-curated deno.land/x names that impersonate official or popular modules.
# No public advisory feed exists for deno.land/x; each entry names the module
# it imitates.
DENO_BLOCKLIST = frozenset({
    "deno_std",  # official standard library, published as "std"
    "denoland",  # the Deno project's own GitHub organisation
    "stdlib",  # "std"
    "std_",  # "std", trailing-underscore squat
    "oak_",  # "oak" HTTP middleware framework
    "dax_",  # "dax" shell scripting library
    "denodb_",  # "denodb" ORM
})
