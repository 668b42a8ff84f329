"""Configuration checks run before any network call.

Both validators are pure: no I/O, no SDK imports.

``validate_datasource`` accumulates every finding so the datasource form can
show them all at once. ``validate_action`` stops at the first problem, in the
order the query form is filled in.
"""

from __future__ import annotations

from typing import List, Optional, Set

from storeflow.core.exception import ConfigurationError
from storeflow.core.models import ActionConfiguration, DatasourceConfiguration, Property, S3Action

ACTION_PROPERTY_INDEX = 0
BUCKET_NAME_PROPERTY_INDEX = 1
CLIENT_REGION_PROPERTY_INDEX = 0

MSG_DATASOURCE_INCOMPLETE = (
    "At least one of the mandatory fields in S3 datasource creation form is empty - "
    "'Access Key'/'Secret Key'/'Region'. Please fill all the mandatory fields and try again."
)
MSG_ACCESS_KEY_EMPTY = (
    "Mandatory parameter 'Access Key' is empty. Did you forget to edit the 'Access Key' "
    "field in the datasource creation form ? You need to fill it with your AWS Access Key."
)
MSG_SECRET_KEY_EMPTY = (
    "Mandatory parameter 'Secret Key' is empty. Did you forget to edit the 'Secret Key' "
    "field in the datasource creation form ? You need to fill it with your AWS Secret Key."
)
MSG_REGION_EMPTY = (
    "Mandatory parameter 'Region' is empty. Did you forget to edit the 'Region' field in "
    "the datasource creation form ? You need to fill it with the region where your AWS "
    "instance is hosted."
)
MSG_CREDENTIALS_MISSING = (
    "Mandatory parameters 'Access Key' and/or 'Secret Key' are missing. Did you forget to "
    "edit the 'Access Key'/'Secret Key' fields in the datasource creation form ?"
)

MSG_QUERY_INCOMPLETE = (
    "At least one of the mandatory fields in S3 query creation form is empty - 'Action'/"
    "'Bucket Name'/'File Path'/'Content'. Please fill all the mandatory fields and try again."
)
MSG_TEMPLATES_MISSING = (
    "Mandatory parameters 'Action' and 'Bucket Name' are missing. Did you forget to edit "
    "the 'Action' and 'Bucket Name' fields in the query form ?"
)
MSG_ACTION_MISSING = (
    "Mandatory parameter 'Action' is missing. Did you forget to select one of the actions "
    "from the Action dropdown ?"
)
MSG_PATH_MISSING = (
    "Required parameter 'File Path' is missing. Did you forget to edit the 'File Path' field "
    "in the query form ? This field cannot be left empty with the chosen action."
)
MSG_BUCKET_MISSING = (
    "Mandatory parameter 'Bucket Name' is missing. Did you forget to edit the 'Bucket "
    "Name' field in the query form ?"
)
MSG_BODY_MISSING = (
    "Mandatory parameter 'Content' is missing. Did you forget to edit the 'Content' "
    "field in the query form ?"
)


def _is_blank(s: Optional[str]) -> bool:
    return s is None or not s.strip()


def property_value(props: Optional[List[Optional[Property]]], index: int) -> Optional[str]:
    """Value of the property at `index`, or None when the list/slot/value is missing."""
    if not props or index >= len(props):
        return None
    p = props[index]
    return None if p is None else p.value


def region_of(datasource_configuration: DatasourceConfiguration) -> Optional[str]:
    return property_value(datasource_configuration.properties, CLIENT_REGION_PROPERTY_INDEX)


def validate_datasource(datasource_configuration: Optional[DatasourceConfiguration]) -> Set[str]:
    invalids: Set[str] = set()

    auth = datasource_configuration.authentication if datasource_configuration is not None else None
    if auth is None:
        invalids.add(MSG_DATASOURCE_INCOMPLETE)
    else:
        if _is_blank(auth.username):
            invalids.add(MSG_ACCESS_KEY_EMPTY)
        if _is_blank(auth.password):
            invalids.add(MSG_SECRET_KEY_EMPTY)

    region = region_of(datasource_configuration) if datasource_configuration is not None else None
    if _is_blank(region):
        invalids.add(MSG_REGION_EMPTY)

    return invalids


def validate_action(action_configuration: Optional[ActionConfiguration]) -> S3Action:
    """Check a query and return its parsed action; raises ConfigurationError on the first problem."""
    if action_configuration is None:
        raise ConfigurationError(MSG_QUERY_INCOMPLETE)

    props = action_configuration.plugin_specified_templates
    if not props:
        raise ConfigurationError(MSG_TEMPLATES_MISSING)

    raw_action = property_value(props, ACTION_PROPERTY_INDEX)
    if _is_blank(raw_action):
        raise ConfigurationError(MSG_ACTION_MISSING)

    action = S3Action.parse(raw_action)
    if action is None:
        raise ConfigurationError(
            f"Unsupported value '{raw_action}' for parameter 'Action'. Please select one of "
            f"{[a.value for a in S3Action]} from the Action dropdown in the query form."
        )

    if action.requires_path and _is_blank(action_configuration.path):
        raise ConfigurationError(MSG_PATH_MISSING)

    if _is_blank(property_value(props, BUCKET_NAME_PROPERTY_INDEX)):
        raise ConfigurationError(MSG_BUCKET_MISSING)

    # Empty files are allowed; only an absent body is rejected.
    if action is S3Action.UPLOAD_FILE_FROM_BODY and action_configuration.body is None:
        raise ConfigurationError(MSG_BODY_MISSING)

    return action


def bucket_of(action_configuration: ActionConfiguration) -> str:
    return property_value(action_configuration.plugin_specified_templates, BUCKET_NAME_PROPERTY_INDEX) or ""
