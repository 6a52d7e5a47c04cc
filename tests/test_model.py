from kasconfig.model import (
    Image,
    Network,
    NotFoundError,
    OperatorCondition,
    ResourceLocation,
    Secret,
)


def test_empty_resource_location():
    assert ResourceLocation().is_empty()
    assert ResourceLocation("", "") == ResourceLocation()


def test_non_empty_resource_location():
    assert not ResourceLocation("openshift-config", "foo").is_empty()
    assert not ResourceLocation(name="foo").is_empty()


def test_not_found_error_carries_resource_and_name():
    error = NotFoundError("schedulers.config.openshift.io", "cluster")
    assert isinstance(error, LookupError)
    assert error.name == "cluster"
    assert error.resource == "schedulers.config.openshift.io"
    assert '"cluster"' in str(error)


def test_default_lists_are_independent():
    first, second = Image(), Image()
    first.external_registry_hostnames.append("spec.external.host.com")
    assert second.external_registry_hostnames == []


def test_network_defaults_have_no_policy():
    network = Network()
    assert network.external_ip_policy is None
    assert network.name == "cluster"


def test_condition_equality():
    assert OperatorCondition("T", "True", "R") == OperatorCondition(type="T", status="True", reason="R", message="")


def test_secret_data():
    resource = Secret("webhook", "openshift-config", {"kubeConfig": b"data"})
    assert resource.data["kubeConfig"] == b"data"