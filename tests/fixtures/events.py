import json
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class FakeLambdaContext:
    function_name: str = "test"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = "arn:aws:lambda:us-east-1:123456789012:function:test"
    aws_request_id: str = "da658bd3-2d6f-4e7b-8ec2-937234644fdc"


def api_event(
    method: str,
    path: str,
    caller_id: Optional[str] = "caller-1",
    body: Optional[Dict[str, Any]] = None,
    query: Optional[Dict[str, str]] = None,
    email: Optional[str] = None,
) -> Dict[str, Any]:
    """Build an API Gateway REST proxy event with Cognito authorizer claims."""
    claims: Dict[str, Any] = {}
    if caller_id:
        claims["sub"] = caller_id
    if email:
        claims["email"] = email
    return {
        "resource": path,
        "path": path,
        "httpMethod": method,
        "headers": {"Content-Type": "application/json"},
        "multiValueHeaders": {},
        "queryStringParameters": query,
        "multiValueQueryStringParameters": {k: [v] for k, v in query.items()} if query else None,
        "pathParameters": None,
        "stageVariables": None,
        "requestContext": {
            "resourcePath": path,
            "httpMethod": method,
            "stage": "test",
            "requestId": "request-1",
            "authorizer": {"claims": claims} if claims else None,
        },
        "body": json.dumps(body) if body is not None else None,
        "isBase64Encoded": False,
    }


def parse_body(response: Dict[str, Any]) -> Any:
    return json.loads(response["body"])
