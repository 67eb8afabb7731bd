"""Whitelist configuration and the image policy primitives.

Whitelist entries are matched with substring semantics. The two checks look
in opposite directions: a namespace is whitelisted when it appears inside a
pattern, while an image is whitelisted when a pattern appears inside the
image reference.
"""

from pydantic import BaseModel, ConfigDict


def split_whitelist(value: str | None) -> tuple[str, ...]:
    """Split a comma-delimited whitelist.

    Empty entries are kept, so an empty string produces a single empty
    pattern.
    """
    if value is None:
        value = ""
    return tuple(str(value).split(","))


class WhitelistConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    namespaces: tuple[str, ...] = ("",)
    registries: tuple[str, ...] = ("",)

    @classmethod
    def from_strings(cls, namespaces: str | None, registries: str | None):
        return cls(
            namespaces=split_whitelist(namespaces),
            registries=split_whitelist(registries),
        )


class WebhookConfig(BaseModel):
    """Read-only settings shared by every admission request."""

    model_config = ConfigDict(frozen=True)

    docker_registry_url: str
    registry_secret_name: str
    whitelist: WhitelistConfig = WhitelistConfig()


def namespace_is_whitelisted(namespace: str, patterns) -> bool:
    return any(p == namespace or namespace in p for p in patterns)


def registry_is_whitelisted(image: str, patterns) -> bool:
    return any(p == image or p in image for p in patterns)


def rewrite_image(image: str, registry: str) -> str:
    """Point an image reference at `registry`.

    References with fewer than three path segments (`nginx`, `nginx:1.25`,
    `library/nginx`) are taken to have no registry host and get `registry`
    prepended. Otherwise the first segment is replaced.
    """
    parts = image.split("/")
    if len(parts) < 3:
        return f"{registry}/{image}"

    parts[0] = registry
    return "/".join(parts)
