import argparse
import functools
import logging
import sys

import pydantic
from pydantic_core import PydanticSerializationError

from flask import Flask, abort, request, jsonify, current_app
from prometheus_client import CONTENT_TYPE_LATEST

from kubenab.engine import (
    mutate_pod,
    mutation_response,
    validate_pod,
    validation_response,
)
from kubenab.exc import ApplicationError
from kubenab.metrics import WebhookMetrics, timed
from kubenab.models import AdmissionReview, BaseModel
from kubenab.policy import WebhookConfig, WhitelistConfig

LOG = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


class DEFAULTS:
    DOCKER_REGISTRY_URL = None
    REGISTRY_SECRET_NAME = None
    WHITELIST_NAMESPACES = ""
    WHITELIST_REGISTRIES = ""
    MAX_CONTENT_LENGTH = 3 * 1024 * 1024


REQUIRED_SETTINGS = ("DOCKER_REGISTRY_URL", "REGISTRY_SECRET_NAME")


def jsonresponse():
    """Transforms the response from a view function into a JSON object."""

    def _outer(func):
        @functools.wraps(func)
        def _inner(*args, **kwargs):
            res = func(*args, **kwargs)
            try:
                if isinstance(res, BaseModel):
                    return jsonify(res.model_dump(mode="json", exclude_none=True))
                else:
                    return jsonify(res)
            except (PydanticSerializationError, TypeError) as err:
                LOG.error("failed to encode response: %s", err)
                raise ApplicationError("failed to encode admission response")

        return _inner

    return _outer


def read_admission_review() -> AdmissionReview:
    LOG.info("Serving request: %s", request.path)
    LOG.debug("request body: %s", request.get_data(as_text=True))

    body = AdmissionReview.model_validate(request.get_json())
    if body.request is None:
        abort(400, "admission review carries no request")

    LOG.info("AdmissionReview namespace is: %s", body.request.namespace)
    return body


@timed("mutate")
@jsonresponse()
def mutate():
    body = read_admission_review()
    decision = mutate_pod(
        body.request.namespace, body.request.object, current_app.webhook_config
    )
    current_app.metrics.record_decision("mutate", decision.allowed)
    return mutation_response(decision)


@timed("validate")
@jsonresponse()
def validate():
    body = read_admission_review()
    decision = validate_pod(
        body.request.namespace, body.request.object, current_app.webhook_config
    )
    current_app.metrics.record_decision("validate", decision.allowed)
    return validation_response(decision)


def handle_validationerror(err):
    LOG.error("invalid admission review: %s", err)
    return str(err), 400, {"content-type": "text/plain"}


def handle_applicationerror(err):
    LOG.error("%s", err)
    return str(err), 500, {"content-type": "text/plain"}


def health():
    LOG.info("Serving request: %s", request.path)
    return "Ok", 200, {"content-type": "text/plain"}


def ping():
    res = health()
    current_app.metrics.ping_requests.labels(
        code=str(res[1]), method=request.method.lower()
    ).inc()
    return res


def metrics():
    return current_app.metrics.export(), 200, {"content-type": CONTENT_TYPE_LATEST}


def load_webhook_config(config) -> WebhookConfig:
    return WebhookConfig(
        docker_registry_url=config["DOCKER_REGISTRY_URL"],
        registry_secret_name=config["REGISTRY_SECRET_NAME"],
        whitelist=WhitelistConfig.from_strings(
            config["WHITELIST_NAMESPACES"], config["WHITELIST_REGISTRIES"]
        ),
    )


def create_app(**config) -> Flask:
    """Use an application factory [1] to create the Flask app.

    Settings come from the DEFAULTS class, then from KUBENAB_* environment
    variables, then from keyword arguments.

    [1]: https://flask.palletsprojects.com/en/3.0.x/patterns/appfactories/
    """

    app = Flask(__name__)
    app.config.from_object(DEFAULTS)
    # Settings are plain strings, never JSON.
    app.config.from_prefixed_env("KUBENAB", loads=str)
    if config:
        app.config.update(config)
    app.config["MAX_CONTENT_LENGTH"] = int(app.config["MAX_CONTENT_LENGTH"])

    missing = [name for name in REQUIRED_SETTINGS if not app.config.get(name)]
    if missing:
        LOG.error("Missing required configuration: %s", ", ".join(missing))
        sys.exit(1)

    app.webhook_config = load_webhook_config(app.config)
    app.metrics = WebhookMetrics()

    app.errorhandler(pydantic.ValidationError)(handle_validationerror)
    app.errorhandler(ApplicationError)(handle_applicationerror)
    app.add_url_rule("/ping", view_func=ping)
    app.add_url_rule("/healthz", view_func=health)
    app.add_url_rule("/metrics", view_func=metrics)
    app.add_url_rule("/mutate", view_func=mutate, methods=["POST"])
    app.add_url_rule("/validate", view_func=validate, methods=["POST"])

    return app


def main(argv=None):
    parser = argparse.ArgumentParser(description="Image registry admission webhook")
    parser.add_argument(
        "--tls-cert",
        default="/etc/admission-controller/tls/tls.crt",
        help="TLS certificate file.",
    )
    parser.add_argument(
        "--tls-key",
        default="/etc/admission-controller/tls/tls.key",
        help="TLS key file.",
    )
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=443)
    args = parser.parse_args(argv)

    app = create_app()
    app.run(host=args.host, port=args.port, ssl_context=(args.tls_cert, args.tls_key))


if __name__ == "__main__":
    main()
