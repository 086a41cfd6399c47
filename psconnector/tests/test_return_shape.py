"""Tests for return-shape inference."""

from psconnector.parsing.return_shape import classify_expression, find_field, infer_return_shape

BODY = """
$r = Invoke-RestMethod -Uri $u
foreach ($o in $r) {
    [PSCustomObject]@{
        Id      = $o.id
        Total   = 0
        Active  = $true
        Created = [datetime]$o.created
        Updated = Get-Date
        'Display Name' = 'x'   # quoted key
        Note = "a"; Count = -3
    }
}
New-Object PSObject -Property @{ Total = 'dup'; Extra = [DateTime]::UtcNow }
"""


def test_infer_return_shape():
    """Test field types across both construction forms."""
    shape = infer_return_shape(BODY)
    assert shape == {
        "Id": "Unknown",
        "Total": "Int",
        "Active": "Bool",
        "Created": "DateTime",
        "Updated": "DateTime",
        "Display Name": "String",
        "Note": "String",
        "Count": "Int",
        "Extra": "DateTime",
    }


def test_no_construction_site_is_unverifiable():
    """Test that a body without object construction yields None, not {}."""
    assert infer_return_shape("return $users") is None
    assert infer_return_shape('Write-Output "[pscustomobject]@{ A = 1 }"') is None
    assert infer_return_shape("[pscustomobject]@{}") == {}


def test_classify_expression():
    """Test scalar classification of value expressions."""
    assert classify_expression("$False") == "Bool"
    assert classify_expression("'it''s'") == "String"
    assert classify_expression("'a' + $b") == "Unknown"
    assert classify_expression("+12") == "Int"
    assert classify_expression("[DateTime]::ParseExact($s, 'yyyy', $null)") == "DateTime"
    assert classify_expression("[DateTime]::MinValue") == "Unknown"
    assert classify_expression("$x.Count") == "Unknown"


def test_find_field_ignores_case():
    """Test case-insensitive field lookup."""
    assert find_field({"Total": "Int"}, "total") == "Total"
    assert find_field({"Total": "Int"}, "Sum") is None
