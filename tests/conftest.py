import pytest

from kubenab import webhook
from kubenab.policy import WebhookConfig, WhitelistConfig


REGISTRY = "myregistry.io"
SECRET_NAME = "reg-secret"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "DOCKER_REGISTRY_URL",
        "REGISTRY_SECRET_NAME",
        "WHITELIST_NAMESPACES",
        "WHITELIST_REGISTRIES",
        "MAX_CONTENT_LENGTH",
    ):
        monkeypatch.delenv(f"KUBENAB_{name}", raising=False)


@pytest.fixture()
def webhook_config():
    return WebhookConfig(
        docker_registry_url=REGISTRY,
        registry_secret_name=SECRET_NAME,
        whitelist=WhitelistConfig.from_strings("kube-system", REGISTRY),
    )


@pytest.fixture()
def app():
    app = webhook.create_app(
        DOCKER_REGISTRY_URL=REGISTRY,
        REGISTRY_SECRET_NAME=SECRET_NAME,
        WHITELIST_NAMESPACES="kube-system",
        WHITELIST_REGISTRIES=REGISTRY,
        TESTING=True,
    )
    yield app


@pytest.fixture()
def client(app):
    return app.test_client()


def make_pod(images=(), init_images=()):
    return {
        "metadata": {"name": "test-pod"},
        "spec": {
            "containers": [
                {"name": f"app{i}", "image": image} for i, image in enumerate(images)
            ],
            "initContainers": [
                {"name": f"init{i}", "image": image}
                for i, image in enumerate(init_images)
            ],
        },
    }


def make_review(namespace, pod):
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": {
            "uid": "1234",
            "namespace": namespace,
            "operation": "CREATE",
            "object": pod,
        },
    }
