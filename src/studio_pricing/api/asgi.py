"""ASGI entrypoint for the studio pricing API."""

from studio_pricing.api.app import create_app
from studio_pricing.containers import build_container

app = create_app(build_container())
