"""Inline commands that load the module and seed connection globals."""

from typing import List


def module_load_script(module_path_parameter: str) -> str:
    """Body of the command importing the supporting PowerShell module."""
    param = f"_{module_path_parameter}"
    return (
        " param(\n"
        "  [parameter(Mandatory=$true,ValueFromPipelineByPropertyName=$true)]\n"
        "  [ValidateNotNullOrEmpty()]\n"
        f"  [String]${param}\n"
        " )\n"
        f" Import-Module -Force -Verbose ${param} "
    )


def authorization_script(names: List[str], mandatory: List[str]) -> str:
    """
    Body of the command copying connection parameters into global variables.

    Args:
        names: Connection parameter names in declaration order
        mandatory: Names that must be supplied

    Returns:
        PowerShell script text
    """
    if not names:
        return " [CmdletBinding()] param() "

    signature = []
    for name in names:
        pieces = []
        if name in mandatory:
            pieces.append("[Parameter(Mandatory=$true,ValueFromPipelineByPropertyName=$true)]")
            pieces.append("[ValidateNotNullOrEmpty()]")
        else:
            pieces.append("[Parameter(Mandatory=$false,ValueFromPipelineByPropertyName=$true)]")
        pieces.append(f"[String]${name}")
        signature.append("  " + " ".join(pieces))

    assignments = [
        f" if ($PSBoundParameters.ContainsKey('{name}')) {{ $global:{name} = ${name} ; }}"
        for name in names
    ]
    return (
        "\n [CmdletBinding()]\n param(\n"
        + ",\n".join(signature)
        + "\n )\n"
        + "\n".join(assignments)
        + "\n"
    )
