"""Swagger/OpenAPI configuration for the application."""
from flask_swagger_ui import get_swaggerui_blueprint

# Swagger UI configuration
SWAGGER_URL = '/api/docs'
API_URL = '/api/swagger.json'


def get_swagger_blueprint():
    """Create and return swagger UI blueprint."""
    return get_swaggerui_blueprint(
        SWAGGER_URL,
        API_URL,
        config={
            'app_name': "Campus Attendance API",
            'defaultModelsExpandDepth': -1,
            'docExpansion': 'list',
            'filter': True,
            'validatorUrl': None,
        }
    )


def _json_body(required, properties):
    return {
        "required": True,
        "content": {
            "application/json": {
                "schema": {
                    "type": "object",
                    "required": required,
                    "properties": properties
                }
            }
        }
    }


def _operation(tag, summary, body=None, secured=True, params=None, extra_responses=None):
    responses = {
        "200": {
            "description": "Success",
            "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Success"}}}
        },
        "400": {
            "description": "Validation or precondition error",
            "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Error"}}}
        }
    }
    if secured:
        responses["401"] = {"description": "Missing or invalid token"}
        responses["403"] = {"description": "Wrong role or not the session owner"}
    responses.update(extra_responses or {})

    operation = {"tags": [tag], "summary": summary, "responses": responses}
    if secured:
        operation["security"] = [{"bearerAuth": []}]
    if body:
        operation["requestBody"] = body
    if params:
        operation["parameters"] = params
    return operation


def _path_id(name):
    return {"name": name, "in": "path", "required": True, "schema": {"type": "integer"}}


def _query(name, schema_type="string", fmt=None):
    schema = {"type": schema_type}
    if fmt:
        schema["format"] = fmt
    return {"name": name, "in": "query", "required": False, "schema": schema}


HISTORY_FILTERS = [_query("subject_id", "integer"), _query("start_date", fmt="date"), _query("end_date", fmt="date")]

COORDINATES = {
    "latitude": {"type": "number", "minimum": -90, "maximum": 90},
    "longitude": {"type": "number", "minimum": -180, "maximum": 180}
}

FACE_CAPTURE = {
    "encoding": {"type": "array", "items": {"type": "number"}},
    "image": {"type": "string", "description": "Base64 or data URL image"}
}


def generate_swagger_spec():
    """Generate OpenAPI/Swagger specification."""
    return {
        "openapi": "3.0.0",
        "info": {
            "title": "Campus Attendance API",
            "description": "Attendance with WiFi hotspot, geofence and face-similarity verification",
            "version": "1.0.0"
        },
        "servers": [
            {"url": "/api", "description": "Current server"}
        ],
        "components": {
            "securitySchemes": {
                "bearerAuth": {
                    "type": "http",
                    "scheme": "bearer",
                    "bearerFormat": "JWT"
                }
            },
            "schemas": {
                "Error": {
                    "type": "object",
                    "properties": {
                        "error": {"type": "boolean", "default": True},
                        "message": {"type": "string"},
                        "status_code": {"type": "integer"},
                        "code": {"type": "string"},
                        "reason": {"type": "string", "enum": ["too_far", "face_mismatch", "incomplete"]},
                        "detail": {"type": "object"}
                    }
                },
                "Success": {
                    "type": "object",
                    "properties": {
                        "error": {"type": "boolean", "default": False},
                        "message": {"type": "string"},
                        "data": {"type": "object"},
                        "meta": {"type": "object"}
                    }
                }
            }
        },
        "paths": {
            "/auth/login": {
                "post": _operation("Authentication", "Login with email and password", _json_body(
                    ["email", "password"],
                    {"email": {"type": "string", "format": "email"}, "password": {"type": "string"}}
                ), secured=False)
            },
            "/auth/me": {"get": _operation("Authentication", "Current user profile")},
            "/auth/refresh": {"post": _operation("Authentication", "Exchange a refresh token for an access token")},
            "/attendance/session/start": {
                "post": _operation("Sessions", "Start (or schedule) an attendance session", _json_body(
                    ["timetable_id"],
                    {
                        "timetable_id": {"type": "integer"},
                        "subject_id": {"type": "integer"},
                        "schedule_only": {"type": "boolean"},
                        "date": {"type": "string", "format": "date"},
                        "wifi_config": {
                            "type": "object",
                            "properties": {
                                "ssid": {"type": "string"},
                                "bssid": {"type": "string"},
                                "geofence_radius": {"type": "number"},
                                "teacher_ip": {"type": "string"},
                                "gateway_ip": {"type": "string"}
                            }
                        },
                        "location": {
                            "type": "object",
                            "properties": dict(COORDINATES, room={"type": "string"})
                        }
                    }
                ))
            },
            "/attendance/session/{session_id}/activate": {
                "post": _operation("Sessions", "Activate a scheduled session", params=[_path_id("session_id")])
            },
            "/attendance/session/{session_id}/end": {
                "post": _operation("Sessions", "End a session and reconcile counters", params=[_path_id("session_id")])
            },
            "/attendance/session/{session_id}/cancel": {
                "post": _operation("Sessions", "Cancel a scheduled or active session", params=[_path_id("session_id")])
            },
            "/attendance/session/active": {"get": _operation("Sessions", "Active session with records")},
            "/attendance/session/{session_id}/records": {
                "get": _operation("Sessions", "Records of a session", params=[_path_id("session_id")])
            },
            "/attendance/verify": {
                "post": _operation("Verification", "Three-factor attendance verification", _json_body(
                    ["session_id"],
                    {
                        "session_id": {"type": "integer"},
                        "wifi_data": {
                            "type": "object",
                            "properties": {
                                "ssid": {"type": "string"},
                                "bssid": {"type": "string"},
                                "ip_address": {"type": "string"},
                                "mac_address": {"type": "string"},
                                "device_info": {"type": "string"}
                            }
                        },
                        "location_data": {
                            "type": "object",
                            "properties": dict(COORDINATES, accuracy={"type": "number"})
                        },
                        "face_data": {"type": "object", "properties": FACE_CAPTURE}
                    }
                ))
            },
            "/attendance/manual-override": {
                "post": _operation("Verification", "Faculty override of one record", _json_body(
                    ["record_id", "status"],
                    {
                        "record_id": {"type": "integer"},
                        "status": {"type": "string", "enum": ["present", "absent", "late", "excused"]},
                        "reason": {"type": "string"}
                    }
                ))
            },
            "/attendance/student/history": {
                "get": _operation("History", "Student attendance history and stats", params=HISTORY_FILTERS)
            },
            "/attendance/student/active-sessions": {
                "get": _operation("History", "Active sessions for the student's class")
            },
            "/attendance/faculty/history": {
                "get": _operation("History", "Sessions run by the faculty member", params=HISTORY_FILTERS)
            },
            "/wifi/connect": {
                "post": _operation("WiFi", "Register a device on an active hotspot", _json_body(
                    ["ssid"],
                    {
                        "ssid": {"type": "string"},
                        "ip_address": {"type": "string"},
                        "mac_address": {"type": "string"},
                        "device_info": {"type": "string"}
                    }
                ))
            },
            "/wifi/session/{wifi_session_id}/devices": {
                "get": _operation("WiFi", "Connected devices", params=[_path_id("wifi_session_id")])
            },
            "/wifi/session/{wifi_session_id}/end": {
                "post": _operation("WiFi", "Close a hotspot", params=[_path_id("wifi_session_id")])
            },
            "/wifi/active": {"get": _operation("WiFi", "Active hotspots")},
            "/wifi/verify-ip": {
                "post": _operation("WiFi", "Check the device IP against the hotspot subnet", _json_body(
                    ["wifi_session_id", "ip_address"],
                    {"wifi_session_id": {"type": "integer"}, "ip_address": {"type": "string"}}
                ))
            },
            "/face/register": {
                "post": _operation("Face", "Store a reference vector", _json_body([], FACE_CAPTURE))
            },
            "/face/verify": {
                "post": _operation("Face", "Compare a capture with the reference", _json_body([], FACE_CAPTURE))
            },
            "/face/status": {"get": _operation("Face", "Whether a reference vector is stored")},
            "/face/remove": {"delete": _operation("Face", "Delete the reference vector")},
            "/events/stream": {
                "get": _operation("Realtime", "Server-Sent Events stream", params=[
                    _query("session_id", "integer"),
                    _query("token")
                ])
            }
        }
    }
