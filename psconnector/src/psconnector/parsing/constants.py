"""Constants for PowerShell source parsing."""

# Logging helpers shipped alongside connector modules; never connector commands
LOGGER_HELPER_FUNCTIONS = {
    "Get-FunctionName",
    "Get-Logger",
    "Get-NewLogger",
    "Get-NewLogConfig",
    "Get-NewLogTarget",
    "Get-LogMessageLayout",
}

# Automatic variables that can never name a declared parameter
AUTOMATIC_VARIABLES = {
    "true",
    "false",
    "null",
    "_",
    "args",
    "input",
    "this",
    "psitem",
    "psboundparameters",
    "pscmdlet",
    "myinvocation",
}

INT_TYPES = {
    "int",
    "int16",
    "int32",
    "int64",
    "long",
    "short",
    "byte",
    "uint16",
    "uint32",
    "uint64",
    "ulong",
    "ushort",
}

BOOL_TYPES = {"bool", "boolean", "switch", "switchparameter"}

DATETIME_TYPES = {"datetime", "datetimeoffset"}
