"""Constants for descriptor compilation."""

ROOT_TAG = "PowershellConnectorDefinition"
XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'

# Header defaults
DEFAULT_CONNECTOR_ID = "CustomConnector"
DEFAULT_CONNECTOR_DESCRIPTION = "Example SQL Connector"
DEFAULT_CONNECTOR_VERSION = "1.0"

# Module path connection parameter
MODULE_PATH_PARAMETER = "PathToPSModule"
MODULE_PATH_DESCRIPTION = (
    "Path to the supporting PowerShell Module eg. C:\\temp\\SalesforceFunctions.psm1"
)
OPTIONAL_SUFFIX = " (optional)"

# Bootstrap commands run on connect
MODULE_LOAD_COMMAND = "Import-SFModule"
AUTHORIZATION_COMMAND = "Get-Authorization"

SECURE_CONVERSION = "ToSecureString"
