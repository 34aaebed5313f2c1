"""Home Connect tool catalog.

The order of ``HOME_CONNECT_TOOLS`` is the order clients see in
``tools/list``.
"""

from shared.models import ExecutionType, ToolDefinition
from shared.schema import object_schema

DOMAIN = "home_connect"

_HA_ID = {
    "type": "string",
    "description": "The Home Appliance ID"
}


def _appliance_tool(
    name: str,
    description: str,
    execution_type: ExecutionType = ExecutionType.READ
) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=description,
        domain=DOMAIN,
        input_schema=object_schema({"haId": _HA_ID}, required=["haId"]),
        execution_type=execution_type
    )


HOME_CONNECT_TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="get_appliances",
        description="Get all connected Home Connect appliances",
        domain=DOMAIN,
        input_schema=object_schema({})
    ),
    _appliance_tool(
        "get_appliance_status",
        "Get the status of a specific appliance"
    ),
    _appliance_tool(
        "get_appliance_programs",
        "Get available programs for an appliance"
    ),
    ToolDefinition(
        name="start_program",
        description="Start a program on an appliance",
        domain=DOMAIN,
        input_schema=object_schema(
            {
                "haId": _HA_ID,
                "programKey": {
                    "type": "string",
                    "description": "The program key to start"
                },
                "options": {
                    "type": "object",
                    "description": "Optional program options",
                    "additionalProperties": True
                },
            },
            required=["haId", "programKey"]
        ),
        execution_type=ExecutionType.WRITE
    ),
    _appliance_tool(
        "stop_program",
        "Stop the active program on an appliance",
        ExecutionType.WRITE
    ),
    _appliance_tool(
        "get_settings",
        "Get settings of an appliance"
    ),
    ToolDefinition(
        name="update_setting",
        description="Update a setting on an appliance",
        domain=DOMAIN,
        input_schema=object_schema(
            {
                "haId": _HA_ID,
                "settingKey": {
                    "type": "string",
                    "description": "The setting key to update"
                },
                "value": {
                    "type": ["string", "number", "boolean"],
                    "description": "The new value for the setting"
                },
            },
            required=["haId", "settingKey", "value"]
        ),
        execution_type=ExecutionType.WRITE
    ),
    ToolDefinition(
        name="get_auth_url",
        description="Get the OAuth authorization URL for Home Connect",
        domain=DOMAIN,
        input_schema=object_schema({})
    ),
)
