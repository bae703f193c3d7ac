"""Configuration file schemas for wpstack."""

_NAME = {"type": "string", "minLength": 1, "pattern": r"^[A-Za-z0-9][A-Za-z0-9_.-]*$"}

STACK_CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "project_dir": {
            "type": "string",
            "description": "Directory holding the compose file and the env file"
        },
        "compose": {
            "type": "object",
            "properties": {
                "file": {"type": "string", "minLength": 1},
                "env_file": {"type": "string", "minLength": 1}
            },
            "additionalProperties": False
        },
        "volumes": {
            "type": "object",
            "properties": {
                "database": _NAME,
                "files": _NAME
            },
            "additionalProperties": False
        },
        "services": {
            "type": "object",
            "properties": {
                "database": _NAME,
                "app": _NAME,
                "proxy": _NAME
            },
            "additionalProperties": False
        },
        "database": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "user": {"type": "string"},
                "password": {"type": "string"},
                "root_password": {"type": "string"},
                "readiness_timeout": {"type": "number", "exclusiveMinimum": 0},
                "poll_interval": {"type": "number", "exclusiveMinimum": 0}
            },
            "additionalProperties": False
        },
        "ssl": {
            "type": "object",
            "properties": {
                "primary_domain": {"type": "string"},
                "alt_domains": {
                    "type": "array",
                    "items": {"type": "string", "minLength": 1}
                },
                "email": {"type": "string"},
                "staging": {"type": "boolean"},
                "letsencrypt_dir": {"type": "string", "minLength": 1},
                "nginx_dir": {"type": "string", "minLength": 1},
                "certbot_image": {"type": "string", "minLength": 1},
                "app_upstream": {"type": "string", "minLength": 1}
            },
            "additionalProperties": False
        },
        "helper_image": {"type": "string", "minLength": 1}
    },
    "additionalProperties": False
}
