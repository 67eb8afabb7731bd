import pydantic
import pytest

from kubenab.policy import (
    WebhookConfig,
    WhitelistConfig,
    namespace_is_whitelisted,
    registry_is_whitelisted,
    rewrite_image,
    split_whitelist,
)


def test_split_keeps_empty_entries():
    assert split_whitelist("") == ("",)
    assert split_whitelist("a,,b") == ("a", "", "b")
    assert split_whitelist(None) == ("",)


def test_whitelist_from_strings():
    whitelist = WhitelistConfig.from_strings("kube-system,monitoring", "myregistry.io")
    assert whitelist.namespaces == ("kube-system", "monitoring")
    assert whitelist.registries == ("myregistry.io",)


def test_config_is_read_only(webhook_config):
    with pytest.raises(pydantic.ValidationError):
        webhook_config.docker_registry_url = "other.io"
    with pytest.raises(pydantic.ValidationError):
        webhook_config.whitelist.registries = ()


def test_namespace_exact_match():
    assert namespace_is_whitelisted("kube-system", ["kube-system"])


def test_namespace_substring_of_pattern():
    """A namespace counts as whitelisted when it is contained in a pattern."""
    assert namespace_is_whitelisted("kube", ["kube-system"])
    assert namespace_is_whitelisted("system", ["kube-system"])


def test_namespace_containing_pattern_is_not_whitelisted():
    assert not namespace_is_whitelisted("kube-system-extra", ["kube-system"])
    assert not namespace_is_whitelisted("default", ["kube-system"])


def test_namespace_empty_pattern_only_matches_empty_namespace():
    assert not namespace_is_whitelisted("default", [""])
    assert namespace_is_whitelisted("", [""])


def test_registry_exact_match():
    assert registry_is_whitelisted("myregistry.io", ["myregistry.io"])


def test_registry_pattern_inside_image():
    assert registry_is_whitelisted("myregistry.io/app:1.0", ["myregistry.io"])
    assert registry_is_whitelisted("docker.io/myregistry.io/app", ["myregistry.io"])


def test_registry_not_whitelisted():
    assert not registry_is_whitelisted("docker.io/library/nginx", ["myregistry.io"])
    assert not registry_is_whitelisted("nginx:latest", ["myregistry.io"])


def test_registry_image_inside_pattern_is_not_whitelisted():
    assert not registry_is_whitelisted("registry.io", ["myregistry.io"])


def test_empty_registry_pattern_approves_everything():
    assert registry_is_whitelisted("docker.io/library/nginx", [""])


@pytest.mark.parametrize(
    "image,expected",
    [
        ("nginx", "myregistry.io/nginx"),
        ("nginx:latest", "myregistry.io/nginx:latest"),
        ("library/nginx", "myregistry.io/library/nginx"),
        ("docker.io/library/nginx", "myregistry.io/library/nginx"),
        ("quay.io/org/sub/app:v1", "myregistry.io/org/sub/app:v1"),
        (
            "gcr.io/proj/app@sha256:abcd",
            "myregistry.io/proj/app@sha256:abcd",
        ),
    ],
)
def test_rewrite_image(image, expected):
    assert rewrite_image(image, "myregistry.io") == expected


def test_rewrite_two_segments_keeps_host():
    """Two segment references are treated as having no registry host, even
    when the first segment looks like one."""
    assert rewrite_image("quay.io/app", "myregistry.io") == "myregistry.io/quay.io/app"


def test_webhook_config_default_whitelist():
    config = WebhookConfig(docker_registry_url="r.io", registry_secret_name="s")
    assert config.whitelist.namespaces == ("",)
    assert config.whitelist.registries == ("",)
