import base64
from typing import Any
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    model_validator,
    field_validator,
)
from pydantic_core import PydanticSerializationError
from enum import StrEnum


class ApiVersion(StrEnum):
    V1 = "admission.k8s.io/v1"
    V1BETA1 = "admission.k8s.io/v1beta1"


class Operation(StrEnum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


class PatchType(StrEnum):
    JSONPatch = "JSONPatch"


class PatchOp(StrEnum):
    REPLACE = "replace"
    ADD = "add"
    REMOVE = "remove"


class StatusReason(StrEnum):
    INVALID = "Invalid"


class PatchAction(BaseModel):
    op: PatchOp
    path: str
    value: Any = None


# https://jsonpatch.com/
Patch = RootModel[list[PatchAction]]


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#statuscause-v1-meta
class StatusCause(BaseModel):
    message: str


class StatusDetails(BaseModel):
    causes: list[StatusCause] = []


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#status-v1-meta
class Status(BaseModel):
    reason: StatusReason | None = None
    details: StatusDetails | None = None


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionResponse
class AdmissionResponse(BaseModel):
    allowed: bool
    uid: str | None = None
    result: Status | None = None
    patchType: PatchType | None = None
    patch: str | None = None

    @field_validator("patch", mode="before")
    @classmethod
    def validate_patch(cls, val):
        if isinstance(val, Patch):
            try:
                val = base64.b64encode(
                    val.model_dump_json(exclude_none=True).encode()
                ).decode()
            except PydanticSerializationError as err:
                raise ValueError(f"unable to serialize patch: {err}")
        elif isinstance(val, (str, bytes)):
            # Make sure the base64 string contains valid data.
            Patch.model_validate_json(base64.b64decode(val))
        return val

    @model_validator(mode="after")
    def validate_model(self):
        if self.patch and not self.patchType:
            raise ValueError("missing patchType field")
        if self.patchType and not self.patch:
            raise ValueError(f"patchType is {self.patchType} but there is no patch")

        return self


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionRequest
class AdmissionRequest(BaseModel):
    uid: str | None = None
    namespace: str = ""
    operation: Operation = Operation.CREATE
    object: dict[str, Any] | None = None


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionReview
class AdmissionReview(BaseModel):
    apiVersion: ApiVersion | None = None
    kind: str | None = None
    request: AdmissionRequest | None = None
    response: AdmissionResponse | None = None

    @model_validator(mode="after")
    def validate_model(self):
        if not (self.request or self.response):
            raise ValueError("must contain a request or a response")

        return self


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#localobjectreference-v1-core
class LocalObjectReference(BaseModel):
    name: str


# Containers and pods keep every field we do not model so that a container
# written back through a patch is not truncated.
class Container(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str | None = None
    image: str = ""


class PodSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    containers: list[Container] = []
    initContainers: list[Container] = []

    @field_validator("containers", "initContainers", mode="before")
    @classmethod
    def validate_containers(cls, val):
        # A null container list means the same as an absent one.
        if val is None:
            return []
        return val


class Pod(BaseModel):
    model_config = ConfigDict(extra="allow")

    spec: PodSpec = Field(default_factory=PodSpec)
