"""Tests for IR models."""

import pytest
from pydantic import TypeAdapter, ValidationError
from psconnector.ir.bindings import (
    AttributeTarget,
    BindingModel,
    ChainItem,
    ConnectionParameterGlobal,
    FixedArrayGlobal,
    GlobalParameter,
    ManualTarget,
)
from psconnector.ir.command import Command, Parameter
from psconnector.ir.project import ConnectorProject
from psconnector.ir.schema import Attribute, Entity


def test_command_verb_and_noun():
    """Test Verb-Noun splitting of command names."""
    cmd = Command(name="Get-Users", parameters=[Parameter(name="Id")])
    assert cmd.verb == "Get"
    assert cmd.noun == "Users"
    assert cmd.get_parameter("id").name == "Id"
    assert Command(name="Initialize").verb is None


def test_parameter_required():
    """Test that a default value makes a mandatory parameter optional."""
    assert Parameter(name="a", mandatory=True).required
    assert not Parameter(name="a", mandatory=True, has_default=True).required
    assert Parameter(name="a").origin == "Manual"


def test_entity_rejects_two_keys():
    """Test that an entity may not have more than one key attribute."""
    with pytest.raises(ValidationError):
        Entity(
            name="User",
            attributes=[Attribute(name="id", is_key=True), Attribute(name="uid", is_key=True)],
        )


def test_entity_key_name_guess():
    """Test key name lookup order: flag, exact id, *id, first attribute."""
    assert Entity(name="A", attributes=[Attribute(name="x"), Attribute(name="y", is_key=True)]).key_name == "y"
    assert Entity(name="A", attributes=[Attribute(name="userId"), Attribute(name="ID")]).key_name == "ID"
    assert Entity(name="A", attributes=[Attribute(name="name"), Attribute(name="userId")]).key_name == "userId"
    assert Entity(name="A", attributes=[Attribute(name="name")]).key_name == "name"
    assert Entity(name="A").key_name == "Id"


def test_binding_target_discriminator():
    """Test that chain inputs resolve to the right target kind."""
    item = ChainItem.model_validate(
        {
            "command": "Create-User",
            "inputs": {
                "name": {"kind": "attribute", "name": "name", "converter": "NullToEmptyString"},
                "region": {"kind": "manual", "value": "EU"},
            },
        }
    )
    assert isinstance(item.inputs["name"], AttributeTarget)
    assert item.inputs["name"].converter == "NullToEmptyString"
    assert isinstance(item.inputs["region"], ManualTarget)


def test_global_parameter_discriminator_ignores_mandatory():
    """Test global parameter kinds and that mandatoriness cannot be authored."""
    adapter = TypeAdapter(GlobalParameter)
    conn = adapter.validate_python({"source": "ConnectionParameter", "name": "ApiKey", "mandatory": True})
    assert isinstance(conn, ConnectionParameterGlobal)
    assert not hasattr(conn, "mandatory")

    arr = adapter.validate_python({"source": "FixedArray", "name": "Scopes", "values": ["a", "b"]})
    assert isinstance(arr, FixedArrayGlobal)

    with pytest.raises(ValidationError):
        adapter.validate_python({"source": "Environment", "name": "X"})


def test_binding_model_lookup():
    """Test chain lookup distinguishes undeclared from empty chains."""
    model = BindingModel(chains={"User": {"List": [], "Insert": [ChainItem(command="Add-User")]}})
    assert model.chain_for("User", "List") == []
    assert model.chain_for("User", "Update") is None
    assert model.chain_for("Order", "List") is None


def test_project_round_trip_json():
    """Test ConnectorProject JSON serialization."""
    project = ConnectorProject(
        entities=[Entity(name="User", attributes=[Attribute(name="id", is_key=True)])],
        global_parameters=[ConnectionParameterGlobal(name="ApiKey", sensitive=True)],
    )
    loaded = TypeAdapter(ConnectorProject).validate_json(project.model_dump_json())
    assert loaded == project
    assert loaded.get_global("apikey").name == "ApiKey"
    assert loaded.get_entity("user").name == "User"
