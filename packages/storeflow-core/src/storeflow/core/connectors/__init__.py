from __future__ import annotations

import importlib

from storeflow.core.exception import InternalError


def require(spec: str):
    """
    Import a driver lazily so the core loads without boto3 installed.

    "boto3" returns the module; "botocore.config:Config" returns the attribute.
    """
    if ":" in spec:
        module_name, attr = spec.split(":", 1)
        return require_attr(module_name, attr)
    try:
        return importlib.import_module(spec)
    except ImportError as e:
        raise InternalError(f"S3 driver module {spec} is not installed.") from e


def require_attr(module_name: str, attr_name: str):
    # botocore.credentials:Credentials and botocore.config:Config
    try:
        return getattr(importlib.import_module(module_name), attr_name)
    except (ImportError, AttributeError) as e:
        raise InternalError(f"S3 driver is missing {module_name}.{attr_name}.") from e
