"""Tests for descriptor compilation."""

import re
import xml.etree.ElementTree as ET

from psconnector.compiler.descriptor import (
    CompileOptions,
    compile_descriptor,
    set_parameter_attributes,
)
from psconnector.ir.bindings import (
    AttributeTarget,
    BindingModel,
    ChainItem,
    ConnectionParameterGlobal,
    FixedArrayGlobal,
    FixedValueGlobal,
    GlobalTarget,
    ManualTarget,
    PropertyBinding,
    ReturnBinding,
    SwitchParameterGlobal,
)
from psconnector.ir.project import ConnectorHeader, ConnectorProject
from psconnector.ir.schema import Attribute, Entity
from psconnector.parsing.commands import parse_commands

USER_SOURCE = """
function Get-Users {
    param([string]$id)
    [pscustomobject]@{ id = 'u1'; name = 'Ann' }
}

function Create-User {
    param(
        [Parameter(Mandatory=$true)][string]$name, # Source: Schema
        [Parameter(Mandatory=$true)][datetime]$createdAt # Source: Schema
    )
}

function Update-User {
    param(
        [Parameter(Mandatory=$true)][string]$id, # Source: Schema # Key
        [string]$name, # Source: Schema
        [string]$email # Source: Schema
    )
}

function Add-UserEmail {
    param(
        [Parameter(Mandatory=$true)][string]$email # Source: Schema
    )
}
"""

ORDER_SOURCE = """
function Get-Orders {
    param(
        [Parameter(Mandatory=$true)][string]$ApiKey, # Source: Connection
        [string]$Region # Source: Connection
    )
    [pscustomobject]@{ Id = 'o1'; Total = 5 }
}

function Get-OrderTotals {
    param()
    [pscustomobject]@{ Total = 5 }
}
"""


def user_project(**kwargs) -> ConnectorProject:
    return ConnectorProject(
        entities=[
            Entity(
                name="User",
                attributes=[
                    Attribute(name="id", is_key=True),
                    Attribute(name="name"),
                    Attribute(name="createdAt", type="DateTime", is_auto_fill=True, is_mandatory=True),
                    Attribute(name="email", access="ReadAndInsertOnly"),
                ],
            ),
            Entity(name="Invoice", attributes=[Attribute(name="number")]),
        ],
        **kwargs,
    )


def order_project(**kwargs) -> ConnectorProject:
    return ConnectorProject(
        entities=[
            Entity(
                name="Order",
                attributes=[
                    Attribute(name="Id", is_key=True),
                    Attribute(name="Total", type="Int"),
                    Attribute(name="Notes"),
                    Attribute(name="Secret", access="WriteOnly"),
                ],
            )
        ],
        global_parameters=[
            ConnectionParameterGlobal(name="ApiKey", description="API key", sensitive=True, secure=True),
            ConnectionParameterGlobal(name="Region"),
        ],
        **kwargs,
    )


def prop(root: ET.Element, cls: str, name: str) -> ET.Element:
    return root.find(f"./Schema/Class[@Name='{cls}']/Properties/Property[@Name='{name}']")


def test_scenario_default_chains_and_forced_mandatory():
    """Test default chains, forced mandatoriness and modification triggers."""
    project = ConnectorProject(
        entities=[
            Entity(
                name="User",
                attributes=[Attribute(name="id", is_key=True), Attribute(name="name", is_mandatory=True)],
            )
        ]
    )
    commands = parse_commands(
        """
function Get-Users { param([string]$id) }
function Create-User {
    param([Parameter(Mandatory=$true)][string]$name # Source: Schema
    )
}
"""
    )
    root = compile_descriptor(project, commands).root

    read = root.find("./Schema/Class[@Name='User']/ReadConfiguration")
    assert read.find("ListingCommand").get("Command") == "Get-Users"
    insert_items = root.findall("./Schema/Class[@Name='User']/MethodConfiguration/Method[@Name='Insert']/CommandSequence/Item")
    assert [i.get("Command") for i in insert_items] == ["Create-User"]

    name = prop(root, "User", "name")
    assert name.get("IsMandatory") == "true"
    assert [m.get("Command") for m in name.findall("./ModifiedBy/ModBy")] == ["Create-User"]


def test_binding_forces_mandatory_when_attribute_is_optional():
    """Test that a mandatory bound write parameter makes the property mandatory."""
    root = compile_descriptor(user_project(), parse_commands(USER_SOURCE)).root
    assert prop(root, "User", "name").get("IsMandatory") == "true"
    assert prop(root, "User", "id").get("IsMandatory") == "true"
    assert prop(root, "User", "email").get("IsMandatory") is None


def test_auto_fill_property_is_never_written():
    """Test that AutoFill properties get no trigger, mapping or forced mandatoriness."""
    result = compile_descriptor(user_project(), parse_commands(USER_SOURCE))
    created = prop(result.root, "User", "createdAt")
    assert created.get("IsMandatory") is None
    assert created.find("ModifiedBy") is None
    assert created.find("CommandMappings") is None
    assert any(g.parameter == "createdAt" for g in result.gaps)


def test_read_and_insert_only_drops_update_triggers():
    """Test that ReadAndInsertOnly keeps only Insert-derived triggers."""
    project = user_project(
        bindings=BindingModel(
            chains={
                "User": {
                    "Insert": [ChainItem(command="Create-User"), ChainItem(command="Add-UserEmail", order=2)],
                    "Update": [ChainItem(command="Update-User", condition="ModificationExists")],
                }
            }
        )
    )
    root = compile_descriptor(project, parse_commands(USER_SOURCE)).root

    email = prop(root, "User", "email")
    assert email.get("AccessConstraint") == "ReadAndInsertOnly"
    assert [m.get("Command") for m in email.findall("./ModifiedBy/ModBy")] == ["Add-UserEmail"]

    name = prop(root, "User", "name")
    mods = [(m.get("Command"), m.get("Condition")) for m in name.findall("./ModifiedBy/ModBy")]
    assert mods == [("Create-User", None), ("Update-User", "ModificationExists")]

    update_item = root.find(".//Method[@Name='Update']/CommandSequence/Item")
    assert update_item.get("Condition") == "ModificationExists"
    insert_items = root.findall(".//Method[@Name='Insert']/CommandSequence/Item")
    assert [(i.get("Order"), i.get("Command")) for i in insert_items] == [
        ("1", "Create-User"),
        ("2", "Add-UserEmail"),
    ]


def test_entity_without_commands_is_omitted():
    """Test that an entity with no resolvable command is absent from the output."""
    result = compile_descriptor(user_project(), parse_commands(USER_SOURCE))
    assert result.root.find("./Schema/Class[@Name='Invoice']") is None
    assert result.omitted_entities == ["Invoice"]
    assert "Invoice" not in result.to_xml()


def test_es_plural_commands_keep_their_entity():
    """Test that commands named with an -ses plural still bind to their entity."""
    source = """
function Get-Databases {
    param()
    [pscustomobject]@{ Name = 'db' }
}

function New-Licenses {
    param(
        [string]$Name # Source: Schema
    )
}
"""
    project = ConnectorProject(
        entities=[
            Entity(name="Database", attributes=[Attribute(name="Name", is_key=True)]),
            Entity(name="License", attributes=[Attribute(name="Name", is_key=True)]),
        ]
    )
    result = compile_descriptor(project, parse_commands(source))
    assert result.omitted_entities == []
    listing = result.root.find("./Schema/Class[@Name='Database']/ReadConfiguration/ListingCommand")
    assert listing.get("Command") == "Get-Databases"
    insert = result.root.find("./Schema/Class[@Name='License']/MethodConfiguration/Method[@Name='Insert']")
    assert insert is not None


def test_one_listing_and_one_item_per_read_configuration():
    """Test read configuration shape when the List chain has several items."""
    project = order_project(
        bindings=BindingModel(
            chains={
                "Order": {
                    "List": [
                        ChainItem(command="Get-Orders", inputs={"ApiKey": GlobalTarget(name="ApiKey")}),
                        ChainItem(command="Get-Orders", order=2, inputs={
                            "ApiKey": GlobalTarget(name="Region"),
                            "Region": GlobalTarget(name="Region"),
                        }),
                        ChainItem(command="Get-OrderTotals", order=3),
                    ]
                }
            }
        )
    )
    root = compile_descriptor(project, parse_commands(ORDER_SOURCE)).root
    read = root.find("./Schema/Class[@Name='Order']/ReadConfiguration")

    assert len(read.findall("ListingCommand")) == 1
    assert len(read.findall("CommandSequence")) == 1
    assert len(read.findall("./CommandSequence/Item")) == 1

    for invocation in (read.find("ListingCommand"), read.find("./CommandSequence/Item")):
        params = [s.get("Param") for s in invocation.findall("SetParameter")]
        assert params == ["ApiKey", "Region"]
        assert invocation.find("SetParameter").get("Value") == "ApiKey"


def test_global_mandatoriness_is_derived():
    """Test derived-mandatory connection parameters and their descriptions."""
    result = compile_descriptor(order_project(), parse_commands(ORDER_SOURCE))
    assert result.mandatory_globals == ["ApiKey"]

    params = {p.get("Name"): p for p in result.root.findall("./ConnectionParameters/ConnectionParameter")}
    assert list(params) == ["ApiKey", "Region", "PathToPSModule"]
    assert params["ApiKey"].get("Description") == "API key"
    assert params["ApiKey"].get("IsSensibleData") == "true"
    assert params["Region"].get("Description") == "Region (optional)"
    assert params["PathToPSModule"].get("Description").endswith("(optional)")

    listing = result.root.find(".//Class[@Name='Order']/ReadConfiguration/ListingCommand")
    api_key = listing.find("SetParameter[@Param='ApiKey']")
    assert api_key.attrib == {
        "Value": "ApiKey",
        "Source": "ConnectionParameter",
        "Param": "ApiKey",
        "ConversionMethod": "ToSecureString",
    }

    auth = result.root.find(".//CustomCommand[@Name='Get-Authorization']").text
    assert "[Parameter(Mandatory=$true,ValueFromPipelineByPropertyName=$true)] [ValidateNotNullOrEmpty()] [String]$ApiKey" in auth
    assert "[Parameter(Mandatory=$false,ValueFromPipelineByPropertyName=$true)] [String]$Region" in auth
    assert "$global:Region = $Region" in auth


def test_optional_parameter_does_not_make_global_mandatory():
    """Test that a default value keeps a bound global optional."""
    source = ORDER_SOURCE.replace("[string]$ApiKey,", "[string]$ApiKey = 'dev',")
    result = compile_descriptor(order_project(), parse_commands(source))
    assert result.mandatory_globals == []
    api_key = result.root.find("./ConnectionParameters/ConnectionParameter[@Name='ApiKey']")
    assert api_key.get("Description") == "API key (optional)"


def test_initialization_section():
    """Test bootstrap commands and predefined command list."""
    root = compile_descriptor(order_project(), parse_commands(ORDER_SOURCE)).root

    custom = [c.get("Name") for c in root.findall("./Initialization/CustomCommands/CustomCommand")]
    assert custom == ["Import-SFModule", "Get-Authorization"]
    predefined = [c.get("Name") for c in root.findall("./Initialization/PredefinedCommands/Command")]
    assert predefined == ["Get-Orders"]

    items = root.findall("./Initialization/EnvironmentInitialization/Connect/CommandSequence/Item")
    assert [(i.get("Order"), i.get("Command")) for i in items] == [
        ("1", "Import-SFModule"),
        ("2", "Get-Authorization"),
    ]
    assert items[0].find("SetParameter").get("Param") == "_PathToPSModule"
    assert [s.get("Param") for s in items[1].findall("SetParameter")] == ["ApiKey", "Region"]
    assert root.find("./Initialization/EnvironmentInitialization/Disconnect") is not None


def test_return_bindings():
    """Test inferred, explicit and suppressed return bindings."""
    project = order_project(
        bindings=BindingModel(
            properties={
                "Order": {
                    "Total": PropertyBinding(
                        return_bindings=[
                            ReturnBinding(command="Get-OrderTotals"),
                            ReturnBinding(command="Get-OrderTotals", path="Total"),
                            ReturnBinding(command="Get-Nothing"),
                        ]
                    )
                }
            }
        )
    )
    result = compile_descriptor(project, parse_commands(ORDER_SOURCE))
    root = result.root

    def binds(name):
        bound = prop(root, "Order", name).findall("./ReturnBindings/Bind")
        return [(b.get("Path"), b.get("CommandResultOf")) for b in bound]

    assert binds("Id") == [("Id", "Get-Orders")]
    assert binds("Total") == [("Total", "Get-OrderTotals")]
    assert binds("Notes") == []
    assert binds("Secret") == []

    predefined = [c.get("Name") for c in root.findall("./Initialization/PredefinedCommands/Command")]
    assert predefined == ["Get-Orders", "Get-OrderTotals"]
    assert any(g.command == "Get-Nothing" for g in result.gaps)


def test_property_flags_and_access_override():
    """Test property attribute rendering and per-property access overrides."""
    project = ConnectorProject(
        entities=[
            Entity(
                name="Group",
                attributes=[
                    Attribute(name="Id", is_key=True, is_display=True, description="Group id"),
                    Attribute(name="Members", is_multi_value=True, reference_targets=[
                        {"class_name": "User", "property": "id"},
                    ]),
                    Attribute(name="Name"),
                ],
            )
        ],
        bindings=BindingModel(properties={"Group": {"Name": PropertyBinding(access="ReadOnly")}}),
    )
    commands = parse_commands("function Get-Groups { param() }")
    root = compile_descriptor(project, commands).root

    assert prop(root, "Group", "Id").attrib == {
        "Name": "Id",
        "DataType": "String",
        "IsDisplay": "true",
        "IsUniqueKey": "true",
        "Description": "Group id",
    }
    target = prop(root, "Group", "Members").find("./ReferenceTargets/ReferenceTarget")
    assert target.attrib == {"Class": "User", "Property": "id"}
    assert prop(root, "Group", "Name").get("AccessConstraint") == "ReadOnly"


def test_command_mappings():
    """Test property to parameter mappings with update options."""
    project = user_project(
        bindings=BindingModel(
            chains={
                "User": {
                    "Update": [
                        ChainItem(command="Update-User", inputs={
                            "name": AttributeTarget(name="name", use_old_value=True, mod_type="Replace"),
                            "id": AttributeTarget(name="id", converter="NullToEmptyString"),
                        })
                    ]
                }
            }
        )
    )
    root = compile_descriptor(project, parse_commands(USER_SOURCE)).root
    maps = [m.attrib for m in prop(root, "User", "name").findall("./CommandMappings/Map")]
    assert maps == [
        {"ToCommand": "Create-User", "Parameter": "name"},
        {"ToCommand": "Update-User", "Parameter": "name", "UseOldValue": "true", "ModType": "Replace"},
    ]
    id_maps = [m.attrib for m in prop(root, "User", "id").findall("./CommandMappings/Map")]
    assert id_maps == [{"ToCommand": "Update-User", "Parameter": "id", "Converter": "NullToEmptyString"}]


def test_set_parameter_sources():
    """Test SetParameter attributes for every global source."""
    assert set_parameter_attributes(FixedValueGlobal(name="Env", value="prod"), "Environment") == {
        "Value": "prod", "Source": "FixedValue", "Param": "Environment",
    }
    assert set_parameter_attributes(SwitchParameterGlobal(name="Force"), "Force") == {
        "Source": "SwitchParameter", "Param": "Force",
    }
    assert set_parameter_attributes(FixedArrayGlobal(name="Scopes", values=["a", "b"]), "Scope") == {
        "Value": "a,b", "Source": "FixedArray", "Param": "Scope",
    }


def test_manual_constant_renders_as_fixed_value():
    """Test that manual constants become fixed-value assignments."""
    project = order_project(
        bindings=BindingModel(
            chains={"Order": {"List": [ChainItem(command="Get-Orders", inputs={"Region": ManualTarget(value="EU")})]}}
        )
    )
    root = compile_descriptor(project, parse_commands(ORDER_SOURCE)).root
    region = root.find(".//ListingCommand/SetParameter[@Param='Region']")
    assert region.attrib == {"Value": "EU", "Source": "FixedValue", "Param": "Region"}


def test_header_and_assemblies():
    """Test header fallbacks and plugin assemblies."""
    project = order_project(header=ConnectorHeader(id="Orders"), plugin_assemblies=["lib/Helper.dll"])
    options = CompileOptions(connector_description="Orders connector")
    root = compile_descriptor(project, parse_commands(ORDER_SOURCE), options).root
    assert root.tag == "PowershellConnectorDefinition"
    assert root.attrib == {"Description": "Orders connector", "Version": "1.0", "Id": "Orders"}
    assert root.find("./PluginAssemblies/Assembly").get("Path") == "lib/Helper.dll"


def test_compilation_is_idempotent():
    """Test byte-identical output for identical inputs."""
    commands = parse_commands(USER_SOURCE)
    first = compile_descriptor(user_project(), commands).to_xml()
    second = compile_descriptor(user_project(), parse_commands(USER_SOURCE)).to_xml()
    assert first == second


def test_compact_and_indented_differ_only_in_whitespace():
    """Test that both renderings carry identical content."""
    result = compile_descriptor(order_project(), parse_commands(ORDER_SOURCE))
    pretty = result.to_xml(pretty=True, indent=4)
    compact = result.to_xml(pretty=False)

    assert pretty != compact
    assert compact.startswith('<?xml version="1.0" encoding="utf-8"?><PowershellConnectorDefinition')
    assert re.sub(r">\s+<", "><", pretty).strip() == compact
    assert "\n    <PluginAssemblies" in pretty


def test_no_duplicate_set_parameters():
    """Test that no invocation assigns the same parameter twice."""
    result = compile_descriptor(order_project(), parse_commands(ORDER_SOURCE))
    for invocation in list(result.root.iter("Item")) + list(result.root.iter("ListingCommand")):
        params = [s.get("Param").lower() for s in invocation.findall("SetParameter")]
        assert len(params) == len(set(params))
