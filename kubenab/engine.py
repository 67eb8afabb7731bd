import itertools
import logging
from typing import Any, Literal

from pydantic import BaseModel

from kubenab.models import (
    AdmissionResponse,
    AdmissionReview,
    Container,
    LocalObjectReference,
    Patch,
    PatchAction,
    PatchType,
    Pod,
    Status,
    StatusCause,
    StatusDetails,
    StatusReason,
)
from kubenab.policy import (
    WebhookConfig,
    namespace_is_whitelisted,
    registry_is_whitelisted,
    rewrite_image,
)

LOG = logging.getLogger(__name__)

CONTAINERS_PATH = "/spec/containers"
INIT_CONTAINERS_PATH = "/spec/initContainers"
IMAGE_PULL_SECRETS_PATH = "/spec/imagePullSecrets"


class MutationDecision(BaseModel):
    allowed: Literal[True] = True
    patch: Patch | None = None


class ValidationDecision(BaseModel):
    allowed: bool = False
    cause: str | None = None


class PatchBuilder:
    """Collects JSON patch operations for a single pod."""

    def __init__(self):
        self.actions: list[PatchAction] = []

    def add_container(self, path: str, container: Container):
        # The value is a one-element list holding only the rewritten
        # container, not the whole container array.
        self.actions.append(PatchAction(op="add", path=path, value=[container]))

    def build(self, secret_name: str) -> Patch | None:
        if not self.actions:
            return None

        pull_secret = PatchAction(
            op="add",
            path=IMAGE_PULL_SECRETS_PATH,
            value=[LocalObjectReference(name=secret_name)],
        )
        return Patch(self.actions + [pull_secret])


def not_whitelisted_message(image: str) -> str:
    return f"Image is not being pulled from Private Registry: {image}"


def rewrite_container(container: Container, config: WebhookConfig) -> bool:
    """Rewrite the container image in place if it comes from an unapproved
    registry. Returns True when the container was changed."""

    LOG.info("Container image is %s", container.image)

    if registry_is_whitelisted(container.image, config.whitelist.registries):
        LOG.info("Image is being pulled from Private Registry: %s", container.image)
        return False

    LOG.info(not_whitelisted_message(container.image))
    new_image = rewrite_image(container.image, config.docker_registry_url)
    LOG.info("Changing image registry to: %s", new_image)
    container.image = new_image
    return True


def mutate_pod(
    namespace: str, pod_object: dict[str, Any] | None, config: WebhookConfig
) -> MutationDecision:
    """Rewrite images from unapproved registries.

    The decision is always to allow the pod; the patch is None when nothing
    had to be rewritten or when the namespace is whitelisted. Raises
    pydantic.ValidationError if the pod object cannot be decoded.
    """

    if namespace_is_whitelisted(namespace, config.whitelist.namespaces):
        LOG.info("Namespace %s is whitelisted", namespace)
        return MutationDecision()

    pod = Pod.model_validate(pod_object)
    builder = PatchBuilder()

    for path, containers in (
        (CONTAINERS_PATH, pod.spec.containers),
        (INIT_CONTAINERS_PATH, pod.spec.initContainers),
    ):
        for container in containers:
            if rewrite_container(container, config):
                builder.add_container(path, container)

    return MutationDecision(patch=builder.build(config.registry_secret_name))


def validate_pod(
    namespace: str, pod_object: dict[str, Any] | None, config: WebhookConfig
) -> ValidationDecision:
    """Deny the pod if any container or init container image comes from an
    unapproved registry.

    A pod in a non-whitelisted namespace is only allowed once at least one
    image has passed the check, so a pod without any containers is denied
    (with no cause).
    """

    if namespace_is_whitelisted(namespace, config.whitelist.namespaces):
        LOG.info("Namespace %s is whitelisted", namespace)
        return ValidationDecision(allowed=True)

    pod = Pod.model_validate(pod_object)
    decision = ValidationDecision(allowed=False)

    for container in itertools.chain(pod.spec.containers, pod.spec.initContainers):
        LOG.info("Container image is %s", container.image)

        if not registry_is_whitelisted(container.image, config.whitelist.registries):
            message = not_whitelisted_message(container.image)
            LOG.info(message)
            return ValidationDecision(allowed=False, cause=message)

        LOG.info("Image is being pulled from Private Registry: %s", container.image)
        decision = ValidationDecision(allowed=True)

    return decision


def mutation_response(decision: MutationDecision) -> AdmissionReview:
    if decision.patch is None:
        return AdmissionReview(response=AdmissionResponse(allowed=decision.allowed))

    return AdmissionReview(
        response=AdmissionResponse(
            allowed=decision.allowed,
            patchType=PatchType.JSONPatch,
            patch=decision.patch,
        )
    )


def validation_response(decision: ValidationDecision) -> AdmissionReview:
    result = None
    if not decision.allowed and decision.cause is not None:
        result = Status(
            reason=StatusReason.INVALID,
            details=StatusDetails(causes=[StatusCause(message=decision.cause)]),
        )

    return AdmissionReview(
        response=AdmissionResponse(allowed=decision.allowed, result=result)
    )
