import pytest

from chefwell.core.errors import InvalidNamespace
from chefwell.core.namespace import MAX_NAMESPACE_LENGTH, is_valid_namespace, validate_namespace


@pytest.mark.parametrize("name", ["tenant_acme", "tenant_1", "tenant_a_b_c", "tenant_" + "a" * 56])
def test_accepts_well_formed_namespaces(name):
    assert validate_namespace(name) == name


@pytest.mark.parametrize(
    "name",
    [
        "",
        "public",
        "acme",
        "tenant_",
        "Tenant_acme",
        "tenant_Acme",
        "tenant_DROP TABLE",
        "tenant_acme; DROP SCHEMA public",
        "tenant_acme-bistro",
        "tenant_acme\n",
        "tenant_acme.tabs",
        "tenant_" + "a" * 57,
    ],
)
def test_rejects_malformed_namespaces(name):
    with pytest.raises(InvalidNamespace):
        validate_namespace(name)


def test_length_limit_is_inclusive():
    name = "tenant_" + "x" * (MAX_NAMESPACE_LENGTH - len("tenant_"))
    assert len(name) == MAX_NAMESPACE_LENGTH
    assert is_valid_namespace(name)
    assert not is_valid_namespace(name + "x")


@pytest.mark.parametrize("name", ["tenant_default", "tenant_template", "tenant_public"])
def test_reserved_names_are_rejected_even_if_grammatical(name):
    with pytest.raises(InvalidNamespace) as excinfo:
        validate_namespace(name)
    assert "reserved" in excinfo.value.reason


def test_non_string_is_rejected():
    assert not is_valid_namespace(None)
    assert not is_valid_namespace(42)


def test_error_maps_to_forbidden():
    with pytest.raises(InvalidNamespace) as excinfo:
        validate_namespace("public")
    assert excinfo.value.status_code == 403
    assert excinfo.value.code == "INVALID_TENANT_SCHEMA"
