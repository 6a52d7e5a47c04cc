from datetime import datetime, timedelta

import pytest

from kasconfig.auth import (
    check_issuer,
    observe_auth_metadata,
    observe_service_account_issuer,
    observed_issuer_config,
)
from kasconfig.listers import InMemoryLister, InMemoryRecorder, Listers
from kasconfig.model import (
    Authentication,
    Infrastructure,
    KubeAPIServer,
    NotFoundError,
    ServiceAccountIssuerStatus,
)

TEST_LB_URI = "https://lb.example.com/openid/v1/jwks"
METADATA_FILE = "/etc/kubernetes/static-pod-resources/configmaps/oauth-metadata/oauthMetadata"


class RecordingSyncer:
    def __init__(self, failure=None):
        self.synced = {}
        self.failure = failure

    def sync_config_map(self, destination, source):
        if self.failure is not None:
            raise self.failure
        key = f"configmap/{destination.name}.{destination.namespace}"
        if source.is_empty():
            self.synced[key] = "DELETE"
        else:
            self.synced[key] = f"configmap/{source.name}.{source.namespace}"

    def sync_secret(self, destination, source):
        key = f"secret/{destination.name}.{destination.namespace}"
        if source.is_empty():
            self.synced[key] = "DELETE"
        else:
            self.synced[key] = f"secret/{source.name}.{source.namespace}"


class FailingLister:
    def __init__(self, error):
        self.error = error

    def get(self, name):
        raise self.error


def kas_status_for_issuer(active, *trusted):
    if not active:
        return KubeAPIServer()
    issuers = [ServiceAccountIssuerStatus(name=active)]
    for name in trusted:
        issuers.append(
            ServiceAccountIssuerStatus(
                name=name, expiration_time=datetime.now() + timedelta(hours=12)
            )
        )
    return KubeAPIServer(service_account_issuers=issuers)


def api_args_for_issuer(issuer, trusted):
    if not issuer:
        return {"service-account-jwks-uri": [TEST_LB_URI]}
    values = [issuer, *trusted]
    return {"service-account-issuer": list(values), "api-audiences": list(values)}


def existing_config_for_issuer(issuer, trusted):
    return {"kind": "KubeAPIServerConfig", "apiServerArguments": api_args_for_issuer(issuer, trusted)}


AUTH_ERROR = RuntimeError("foo")
INFRA_ERROR = RuntimeError("bar")


@pytest.mark.parametrize(
    "issuer, trusted, existing_issuer, auth_error, infra_error, expected_issuer, expected_trusted, expected_change",
    [
        ("", [], "", None, None, "", [], False),
        ("", [], "https://example.com", None, None, "", [], True),
        ("https://example.com", [], "", None, None, "https://example.com", [], True),
        ("https://example.com", [], "https://example.com", None, None, "https://example.com", [], False),
        (
            "https://example.com",
            ["https://trusted.example.com"],
            "https://example.com",
            None,
            None,
            "https://example.com",
            ["https://trusted.example.com"],
            False,
        ),
        ("https://example2.com", [], "https://example.com", None, None, "https://example2.com", [], True),
        ("https://example.com", [], "https://example2.com", AUTH_ERROR, None, "https://example2.com", [], False),
        ("", [], "https://example.com", None, INFRA_ERROR, "https://example.com", [], False),
    ],
    ids=[
        "no issuer, no previous issuer",
        "no issuer, previous issuer set",
        "issuer set, no previous issuer",
        "issuer set, previous issuer same",
        "issuer set, previous issuer and trusted issuers same",
        "issuer set, previous issuer different",
        "auth getter error",
        "infra getter error",
    ],
)
def test_observed_issuer_config(
    issuer, trusted, existing_issuer, auth_error, infra_error,
    expected_issuer, expected_trusted, expected_change,
):
    recorder = InMemoryRecorder("SAIssuerTest")

    def get_operator(_name):
        if auth_error is not None:
            raise auth_error
        return kas_status_for_issuer(issuer, *trusted)

    def get_infrastructure(_name):
        if infra_error is not None:
            raise infra_error
        return Infrastructure(api_server_internal_url="https://lb.example.com")

    result, errs = observed_issuer_config(
        existing_config_for_issuer(existing_issuer, trusted),
        get_operator,
        get_infrastructure,
        recorder,
    )

    if auth_error is None and infra_error is None:
        assert errs == []
    if auth_error is not None:
        assert auth_error in errs
    if infra_error is not None:
        assert infra_error in errs
    assert result["apiServerArguments"] == api_args_for_issuer(expected_issuer, expected_trusted)
    assert expected_change == (len(recorder.events()) > 0)


def test_issuer_change_event_names_old_and_new():
    recorder = InMemoryRecorder()
    observed_issuer_config(
        existing_config_for_issuer("https://example.com", []),
        lambda _: kas_status_for_issuer("https://example2.com"),
        lambda _: Infrastructure(api_server_internal_url="https://lb.example.com"),
        recorder,
    )
    [event] = recorder.events()
    assert event.reason == "ObserveServiceAccountIssuer"
    assert "https://example.com" in event.message
    assert "https://example2.com" in event.message


def test_missing_operator_is_treated_as_no_issuer():
    def get_operator(name):
        raise NotFoundError("kubeapiservers", name)

    result, errs = observed_issuer_config(
        {},
        get_operator,
        lambda _: Infrastructure(api_server_internal_url="https://lb.example.com"),
        InMemoryRecorder(),
    )
    assert errs == []
    assert result == {"apiServerArguments": {"service-account-jwks-uri": [TEST_LB_URI]}}


def test_missing_internal_url_keeps_existing_config():
    existing = existing_config_for_issuer("https://example.com", [])
    result, errs = observed_issuer_config(
        existing, lambda _: KubeAPIServer(), lambda _: Infrastructure(), InMemoryRecorder()
    )
    assert result is existing
    assert len(errs) == 1
    assert "APIServerInternalURL missing" in str(errs[0])


def test_invalid_issuer_keeps_existing_config():
    existing = existing_config_for_issuer("https://example.com", [])
    result, errs = observed_issuer_config(
        existing,
        lambda _: kas_status_for_issuer("https://example.com:port"),
        lambda _: Infrastructure(api_server_internal_url="https://lb.example.com"),
        InMemoryRecorder(),
    )
    assert result is existing
    assert len(errs) == 1
    assert "was not a valid URL" in str(errs[0])


@pytest.mark.parametrize(
    "issuer",
    ["", "plain-issuer", "https://example.com", "https://[::1]:8443/path", "urn:issuer:name"],
)
def test_check_issuer_accepts_valid(issuer):
    assert check_issuer(issuer) is None


@pytest.mark.parametrize(
    "issuer",
    [":missing-scheme", "https://example.com:abc", "https://[::1/path", "1a:b", "https://example.com/%zz"],
)
def test_check_issuer_rejects_invalid(issuer):
    with pytest.raises(ValueError, match="contained a ':' but was not a valid URL"):
        check_issuer(issuer)


def test_observe_service_account_issuer_prunes_to_issuer_paths():
    operator = InMemoryLister("kubeapiservers")
    active = kas_status_for_issuer("https://example.com", "https://trusted.example.com")
    active.name = "cluster"
    operator.add(active)
    listers = Listers(kube_apiserver_operator=operator)
    existing = {"kind": "KubeAPIServerConfig", "apiServerArguments": {"other": ["x"]}}

    result, errs = observe_service_account_issuer(listers, InMemoryRecorder(), existing)

    assert errs == []
    assert result == {
        "apiServerArguments": {
            "service-account-issuer": ["https://example.com", "https://trusted.example.com"],
            "api-audiences": ["https://example.com", "https://trusted.example.com"],
        }
    }


def test_observe_service_account_issuer_error_keeps_only_issuer_paths():
    listers = Listers(kube_apiserver_operator=FailingLister(RuntimeError("boom")))
    existing = {
        "kind": "KubeAPIServerConfig",
        "apiServerArguments": {"service-account-issuer": ["https://example.com"], "other": ["x"]},
    }
    result, errs = observe_service_account_issuer(listers, InMemoryRecorder(), existing)
    assert result == {"apiServerArguments": {"service-account-issuer": ["https://example.com"]}}
    assert [str(err) for err in errs] == ["boom"]


def _auth_listers(auth=None, syncer=None):
    lister = InMemoryLister("authentications")
    if auth is not None:
        lister.add(auth)
    return Listers(authentication=lister, resource_syncer=syncer or RecordingSyncer())


def test_auth_metadata_not_found():
    listers = _auth_listers()
    result, errs = observe_auth_metadata(listers, InMemoryRecorder(), {})
    assert result == {}
    assert errs == []
    assert listers.resource_syncer.synced == {}


def test_auth_metadata_from_spec():
    listers = _auth_listers(
        Authentication(oauth_metadata_name="custom", integrated_oauth_metadata_name="status")
    )
    result, errs = observe_auth_metadata(listers, InMemoryRecorder(), {})
    assert errs == []
    assert result == {"authConfig": {"oauthMetadataFile": METADATA_FILE}}
    assert listers.resource_syncer.synced == {
        "configmap/oauth-metadata.openshift-kube-apiserver": "configmap/custom.openshift-config"
    }


def test_auth_metadata_from_status_with_defaulted_type():
    auth = Authentication(integrated_oauth_metadata_name="status")
    listers = _auth_listers(auth)
    result, errs = observe_auth_metadata(listers, InMemoryRecorder(), {})
    assert errs == []
    assert result == {"authConfig": {"oauthMetadataFile": METADATA_FILE}}
    assert listers.resource_syncer.synced == {
        "configmap/oauth-metadata.openshift-kube-apiserver": "configmap/status.openshift-config-managed"
    }
    assert auth.type == ""


def test_auth_metadata_status_ignored_for_other_types():
    listers = _auth_listers(Authentication(type="None", integrated_oauth_metadata_name="status"))
    existing = {"authConfig": {"oauthMetadataFile": METADATA_FILE}}
    result, errs = observe_auth_metadata(listers, InMemoryRecorder(), existing)
    assert errs == []
    assert result == {}
    assert listers.resource_syncer.synced == {
        "configmap/oauth-metadata.openshift-kube-apiserver": "DELETE"
    }


def test_auth_metadata_sync_failure_keeps_previous():
    failure = RuntimeError("sync failed")
    listers = _auth_listers(Authentication(oauth_metadata_name="custom"), RecordingSyncer(failure))
    existing = {"authConfig": {"oauthMetadataFile": "/previous"}, "other": 1}
    result, errs = observe_auth_metadata(listers, InMemoryRecorder(), existing)
    assert result == {"authConfig": {"oauthMetadataFile": "/previous"}}
    assert errs == [failure]


def test_auth_metadata_lister_error_keeps_previous():
    failure = RuntimeError("unavailable")
    listers = Listers(authentication=FailingLister(failure), resource_syncer=RecordingSyncer())
    existing = {"authConfig": {"oauthMetadataFile": "/previous"}}
    result, errs = observe_auth_metadata(listers, InMemoryRecorder(), existing)
    assert result == {"authConfig": {"oauthMetadataFile": "/previous"}}
    assert errs == [failure]